"""Latency probe: polls the store and measures how far ingestion lags now().

A signal without rows yet is reported as "no data" and skipped. A failing
query raises ProbeQueryError, which the runner treats as fatal.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..common.clock import Clock, SystemClock
from ..metrics.collector import IngestMetrics
from .lag_stats import LagSample, LagTracker

logger = logging.getLogger(__name__)


def format_delay(delay) -> str:
    return f"{delay.total_seconds() * 1000:.1f}ms"


class LatencyProbe:
    def __init__(
        self,
        store,
        signal_count: int,
        rounds: int,
        poll_interval_s: float,
        clock: Optional[Clock] = None,
        stop_event: Optional[threading.Event] = None,
        metrics: Optional[IngestMetrics] = None,
        on_sample: Optional[Callable[[LagSample], None]] = None,
    ):
        self._store = store
        self._signal_count = signal_count
        self._rounds = rounds
        self._poll_interval = poll_interval_s
        self._clock = clock or SystemClock()
        self._stop_event = stop_event or threading.Event()
        self._metrics = metrics
        self._on_sample = on_sample
        self.tracker = LagTracker()

    def sample(self, round_index: int, signal_id: int) -> LagSample:
        """Query one signal and record its lag. ProbeQueryError propagates."""
        latest = self._store.latest_timestamp(signal_id)
        if latest is None:
            max_delay = self.tracker.record(signal_id, None)
            logger.info("[PROBE] round=%d signal=%d no data", round_index, signal_id)
            return LagSample(round_index, signal_id, None, max_delay)

        delay = self._clock.now() - latest
        max_delay = self.tracker.record(signal_id, delay)
        logger.info(
            "[PROBE] round=%d signal=%d Current delay: %s - Max delay: %s",
            round_index, signal_id, format_delay(delay), format_delay(max_delay),
        )
        if self._metrics is not None:
            self._metrics.record_lag(signal_id, delay.total_seconds(), max_delay.total_seconds())
        return LagSample(round_index, signal_id, delay, max_delay)

    def run(self) -> LagTracker:
        total = self._rounds * self._signal_count
        taken = 0
        logger.info(
            "[PROBE] Started rounds=%d signals=%d poll=%.2fs",
            self._rounds, self._signal_count, self._poll_interval,
        )
        for round_index in range(self._rounds):
            for signal_id in range(self._signal_count):
                if self._stop_event.is_set():
                    logger.info("[PROBE] Cancelled after %d/%d samples", taken, total)
                    return self.tracker

                sample = self.sample(round_index, signal_id)
                taken += 1
                if self._on_sample is not None:
                    self._on_sample(sample)

                if taken < total and self._clock.wait(self._stop_event, self._poll_interval):
                    logger.info("[PROBE] Cancelled after %d/%d samples", taken, total)
                    return self.tracker

        logger.info("[PROBE] Done samples=%d max_delay=%s", taken, format_delay(self.tracker.max_delay))
        return self.tracker

    def stop(self) -> None:
        self._stop_event.set()
