"""Tick loop package: scrape → sinks periodic daemon.

Modules:
- config: TickConfig dataclass
- schedule: Drifting periodic wake with cancellation
- runner: Orchestrator (TickLoop)
- cli: CLI entry point (main)
"""

from .config import TickConfig
from .schedule import TickSchedule
from .runner import LoopOutcome, TickLoop
from .cli import main

__all__ = ["TickConfig", "TickSchedule", "LoopOutcome", "TickLoop", "main"]
