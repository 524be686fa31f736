"""Tick loop configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PERIOD_SECONDS = 15.0


@dataclass(frozen=True)
class TickConfig:
    """Configuración del loop de ticks."""
    period_seconds: float = DEFAULT_PERIOD_SECONDS
    once: bool = False
