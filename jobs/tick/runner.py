"""Tick loop orchestrator: scrape, then write to each sink in order."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence

from scrape_ingest.core.domain.errors import IngestError
from scrape_ingest.core.domain.sink_interface import IReadingSink

from .schedule import TickSchedule

logger = logging.getLogger(__name__)


class Scraper(Protocol):
    def scrape(self, cancel_event: Optional[threading.Event] = None) -> Dict[str, int]:
        ...


class LoopOutcome(str, Enum):
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class TickLoop:
    """Loop periódico de un solo hilo: nunca hay dos ticks en vuelo.

    Cada tick: scrape → sinks en el orden recibido (relacional antes que
    broker). El primer error de cualquier paso aborta el tick y el loop;
    los sinks posteriores de ese tick no se intentan.
    """

    def __init__(
        self,
        scraper: Scraper,
        sinks: Sequence[IReadingSink],
        schedule: TickSchedule,
        cancel_event: Optional[threading.Event] = None,
        once: bool = False,
    ):
        self._scraper = scraper
        self._sinks = list(sinks)
        self._schedule = schedule
        self._cancel_event = cancel_event or threading.Event()
        self._once = once

        self._ticks_completed = 0
        self._last_timestamp: Optional[datetime] = None
        self._last_reading_count = 0

    @property
    def sinks(self) -> List[IReadingSink]:
        return list(self._sinks)

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def cancel(self) -> None:
        self._cancel_event.set()

    def run_tick(self, timestamp: datetime) -> Dict[str, int]:
        """Ejecuta un tick completo con el timestamp dado.

        Returns:
            Reading set escrito en el tick

        Raises:
            IngestError: primer error del scrape o de un sink
        """
        t0 = time.monotonic()
        try:
            readings = self._scraper.scrape(self._cancel_event)
        except IngestError as e:
            logger.error("[TICK] failed to scrape: %s", e)
            raise

        for sink in self._sinks:
            try:
                sink.write(timestamp, readings)
            except IngestError as e:
                logger.error("[TICK] failed to write to %s: %s", sink.name, e)
                raise

        self._ticks_completed += 1
        self._last_timestamp = timestamp
        self._last_reading_count = len(readings)
        logger.info(
            "[TICK] tick ts=%s readings=%d sinks=%d ms=%.1f",
            timestamp.isoformat(),
            len(readings),
            len(self._sinks),
            (time.monotonic() - t0) * 1000,
        )
        return readings

    def run(self) -> LoopOutcome:
        """Corre hasta la cancelación (o un solo tick con ``once``).

        Raises:
            IngestError: el primer error termina el loop
        """
        timestamp = self._schedule.start()
        logger.info(
            "[TICK] loop started period=%.1fs sinks=%s",
            self._schedule.period_seconds,
            [s.name for s in self._sinks],
        )

        while True:
            self.run_tick(timestamp)
            if self._once:
                return LoopOutcome.COMPLETED

            next_timestamp = self._schedule.wait_next(self._cancel_event)
            if next_timestamp is None:
                logger.info("[TICK] cancelled after %d tick(s)", self._ticks_completed)
                return LoopOutcome.CANCELLED
            timestamp = next_timestamp

    def get_stats(self) -> dict:
        """Retorna estadísticas del loop."""
        return {
            "ticks_completed": self._ticks_completed,
            "last_timestamp": self._last_timestamp.isoformat() if self._last_timestamp else None,
            "last_reading_count": self._last_reading_count,
            "sinks": [s.name for s in self._sinks],
        }
