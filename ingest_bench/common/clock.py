"""Injectable clock.

Every timed wait in the pipeline goes through ``Clock.wait`` so a stop
event interrupts it, and tests can swap in a fake clock.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Clock(ABC):
    """Wall clock, monotonic clock and interruptible sleep."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    @abstractmethod
    def monotonic(self) -> float:
        ...

    @abstractmethod
    def wait(self, stop_event: threading.Event, seconds: float) -> bool:
        """Sleep up to ``seconds``. Returns True if the stop event was set."""
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return time.monotonic()

    def wait(self, stop_event: threading.Event, seconds: float) -> bool:
        if seconds <= 0:
            return stop_event.is_set()
        return stop_event.wait(seconds)
