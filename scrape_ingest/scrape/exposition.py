"""Parser del formato de exposición de texto (``nombre valor`` por línea).

Reglas, en orden:
1. Líneas que empiezan con ``#`` (HELP/TYPE/comentarios) se ignoran.
2. Líneas con prefijo de métrica interna (runtime, proceso, handler HTTP)
   se ignoran.
3. El resto se separa por un único espacio; si no salen exactamente dos
   tokens, se descarta la línea con warning.
4. El valor se parsea como literal decimal; si no lo es, o la lectura no
   cabe en un entero de 64 bits, warning y se descarta.
5. Las métricas con prefijo "escalado" se multiplican por el factor de
   escala antes de truncar a entero; el resto se trunca directamente.
6. Si un nombre se repite, gana la última línea.

El parser no hace I/O: recibe líneas ya decodificadas.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_PREFIXES: Tuple[str, ...] = ("go_", "promhttp_", "process_")
DEFAULT_SCALED_PREFIXES: Tuple[str, ...] = ("temperature_", "pressure_")
DEFAULT_SCALE_FACTOR = 1000

# Literal decimal estricto: sin espacios, guiones bajos ni NaN/Inf
_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")

# Las lecturas se guardan como enteros de 64 bits
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class ExpositionRules:
    """Filtrado y escalado aplicados a cada línea."""
    ignored_prefixes: Tuple[str, ...] = DEFAULT_IGNORED_PREFIXES
    scaled_prefixes: Tuple[str, ...] = DEFAULT_SCALED_PREFIXES
    scale_factor: int = DEFAULT_SCALE_FACTOR

    def is_ignored(self, line: str) -> bool:
        return line.startswith("#") or line.startswith(self.ignored_prefixes)

    def is_scaled(self, name: str) -> bool:
        return name.startswith(self.scaled_prefixes)


@dataclass
class ParseStats:
    """Contadores de un parseo (solo para logs)."""
    parsed: int = 0
    ignored: int = 0
    malformed: int = 0
    invalid_value: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "parsed": self.parsed,
            "ignored": self.ignored,
            "malformed": self.malformed,
            "invalid_value": self.invalid_value,
        }


def coerce_value(name: str, value_text: str, rules: ExpositionRules) -> Optional[int]:
    """Convierte el texto del valor a lectura entera.

    Returns:
        Lectura entera, o None si el texto no es un número decimal o la
        lectura no cabe en 64 bits
    """
    if not _NUMBER_RE.fullmatch(value_text):
        return None

    value = Decimal(value_text)
    # Cota previa al escalado: evita materializar exponentes enormes
    if value and value.adjusted() > 18:
        return None

    if rules.is_scaled(name):
        value = value * rules.scale_factor

    if not INT64_MIN <= value <= INT64_MAX:
        return None

    # int() sobre Decimal trunca hacia cero
    return int(value)


def parse_exposition(
    lines: Iterable[str],
    rules: Optional[ExpositionRules] = None,
    stats: Optional[ParseStats] = None,
) -> Dict[str, int]:
    """Parsea un payload de exposición a reading set.

    Args:
        lines: Líneas del payload (con o sin salto de línea final)
        rules: Reglas de filtrado/escalado; por defecto ``ExpositionRules()``
        stats: Contadores opcionales a rellenar

    Returns:
        Dict nombre → lectura entera
    """
    rules = rules or ExpositionRules()
    stats = stats if stats is not None else ParseStats()
    readings: Dict[str, int] = {}

    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            continue

        if rules.is_ignored(line):
            stats.ignored += 1
            continue

        parts = line.split(" ")
        if len(parts) != 2:
            stats.malformed += 1
            logger.warning("[SCRAPE] invalid line: %r", line)
            continue

        name, value_text = parts
        value = coerce_value(name, value_text, rules)
        if value is None:
            stats.invalid_value += 1
            logger.warning("[SCRAPE] failed to parse value: name=%s value=%r", name, value_text)
            continue

        readings[name] = value
        stats.parsed += 1

    return readings


def parse_exposition_text(text: str, rules: Optional[ExpositionRules] = None) -> Dict[str, int]:
    """Atajo para parsear un payload completo en memoria."""
    return parse_exposition(text.splitlines(), rules)
