"""Periodic wake for the tick loop.

The next deadline is measured from the previous actual wake, so small
delays accumulate (drifting ticker). If a tick's work overruns the
period, the next wake fires immediately.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TickSchedule:
    """Espera al siguiente tick o a la cancelación, lo que ocurra antes."""

    def __init__(
        self,
        period_seconds: float,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utc_now,
    ):
        if period_seconds <= 0:
            raise ValueError(f"period must be positive, got {period_seconds}")
        self.period_seconds = period_seconds
        self._monotonic = monotonic
        self._wall_clock = wall_clock
        self._last_wake: Optional[float] = None

    def start(self) -> datetime:
        """Marca el arranque; retorna el timestamp del primer tick."""
        self._last_wake = self._monotonic()
        return self._wall_clock()

    def wait_next(self, cancel_event: threading.Event) -> Optional[datetime]:
        """Bloquea hasta el próximo tick.

        Returns:
            Timestamp del nuevo tick, o None si se canceló
        """
        if self._last_wake is None:
            self._last_wake = self._monotonic()

        if cancel_event.is_set():
            return None

        remaining = self._last_wake + self.period_seconds - self._monotonic()
        if remaining > 0 and cancel_event.wait(remaining):
            return None
        if cancel_event.is_set():
            return None

        self._last_wake = self._monotonic()
        return self._wall_clock()
