"""Persistence - Registro de sensores y writer relacional."""

from .sensor_registry import SensorRegistry
from .postgres_writer import (
    ALLOWED_READING_COLUMNS,
    PostgresReadingWriter,
    PostgresWriterConfig,
    ReadyStore,
)

__all__ = [
    "SensorRegistry",
    "ALLOWED_READING_COLUMNS",
    "PostgresReadingWriter",
    "PostgresWriterConfig",
    "ReadyStore",
]
