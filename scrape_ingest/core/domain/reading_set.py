"""Reading Set: nombre de métrica → lectura entera de un scrape."""

from __future__ import annotations

import json
from typing import Dict, Mapping

ReadingSet = Dict[str, int]


def serialize_readings(readings: Mapping[str, int]) -> bytes:
    """Serializa el reading set como documento JSON (claves ordenadas).

    El orden estable hace que dos scrapes idénticos produzcan el mismo
    payload byte a byte.
    """
    return json.dumps(dict(readings), sort_keys=True, separators=(",", ":")).encode("utf-8")
