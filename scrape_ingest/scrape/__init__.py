"""Scrape - Parser de exposición y cliente HTTP."""

from .exposition import ExpositionRules, ParseStats, parse_exposition, parse_exposition_text
from .scraper import MetricsScraper

__all__ = [
    "ExpositionRules",
    "ParseStats",
    "parse_exposition",
    "parse_exposition_text",
    "MetricsScraper",
]
