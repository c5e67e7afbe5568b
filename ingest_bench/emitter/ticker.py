"""Fixed-rate ticker with cancellation."""

from __future__ import annotations

import logging
import threading
from typing import Iterator, Optional

from ..common.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class Ticker:
    """Yields tick indexes on a drift-free cadence.

    Tick ``k`` is due at ``start + k * interval``. If the consumer falls more
    than one interval behind, the schedule is re-anchored to now instead of
    firing a burst of catch-up ticks.
    """

    def __init__(
        self,
        interval_s: float,
        clock: Optional[Clock] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._interval = interval_s
        self._clock = clock or SystemClock()
        self._stop_event = stop_event or threading.Event()
        self.reanchors = 0

    @property
    def interval(self) -> float:
        return self._interval

    def stop(self) -> None:
        self._stop_event.set()

    def __iter__(self) -> Iterator[int]:
        tick = 0
        next_due = self._clock.monotonic()
        while not self._stop_event.is_set():
            yield tick
            tick += 1

            next_due += self._interval
            now = self._clock.monotonic()
            delay = next_due - now
            if delay < -self._interval:
                self.reanchors += 1
                logger.debug("[TICKER] %.1fms behind schedule, re-anchoring", -delay * 1000)
                next_due = now
                delay = 0.0
            if self._clock.wait(self._stop_event, max(0.0, delay)):
                return
