"""Abstract interface for reading sinks.

Decouples the tick loop from the storage backends. Any sink with a
lazily created backing handle (Postgres, Kafka) implements it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Mapping


class SinkState(str, Enum):
    """Lifecycle of a sink's backing handle.

    DISCONNECTED: no handle yet (or the last attempt failed).
    READY: handle created and, where needed, prepared.
    """
    DISCONNECTED = "disconnected"
    READY = "ready"


class IReadingSink(ABC):
    """Abstract interface for reading sinks.

    Implementations:
    - PostgresReadingWriter: one transaction per tick
    - KafkaReadingWriter: one message per tick
    """

    name: str = "sink"

    @abstractmethod
    def write(self, timestamp: datetime, readings: Mapping[str, int]) -> None:
        """Write one tick's reading set.

        Raises:
            IngestError: any failure is fatal for the tick
        """
        pass

    @property
    @abstractmethod
    def state(self) -> SinkState:
        """Current lifecycle state of the backing handle."""
        pass
