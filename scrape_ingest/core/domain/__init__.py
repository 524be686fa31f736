"""Domain layer - Modelos, errores y contratos."""

from .errors import (
    IngestError,
    TransportError,
    RequestError,
    NotConnectedError,
    NotPreparedError,
    QueryError,
    TransactionError,
    ProducerCreationError,
    PublishError,
)
from .reading_set import ReadingSet, serialize_readings
from .sink_interface import IReadingSink, SinkState

__all__ = [
    "IngestError",
    "TransportError",
    "RequestError",
    "NotConnectedError",
    "NotPreparedError",
    "QueryError",
    "TransactionError",
    "ProducerCreationError",
    "PublishError",
    "ReadingSet",
    "serialize_readings",
    "IReadingSink",
    "SinkState",
]
