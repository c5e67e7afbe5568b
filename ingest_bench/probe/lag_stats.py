"""Lag statistics per signal.

The running maxima only ever grow within a run.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from statistics import mean, stdev
from typing import Dict, Optional


@dataclass(frozen=True)
class LagSample:
    """One probe observation. ``delay`` is None when the signal had no rows yet."""
    round_index: int
    signal_id: int
    delay: Optional[timedelta]
    max_delay: timedelta


@dataclass
class SignalLagStats:
    """Lag statistics for a single signal."""

    signal_id: int

    total_samples: int = 0
    no_data_count: int = 0
    last_delay: Optional[timedelta] = None
    max_delay: timedelta = timedelta(0)

    # Recent lag samples in ms
    lag_samples: deque = field(default_factory=lambda: deque(maxlen=100))

    def record(self, delay: Optional[timedelta]) -> None:
        if delay is None:
            self.no_data_count += 1
            return
        self.total_samples += 1
        self.last_delay = delay
        self.lag_samples.append(delay.total_seconds() * 1000)
        if delay > self.max_delay:
            self.max_delay = delay

    def get_stats(self) -> dict:
        lag_list = list(self.lag_samples)
        return {
            "signal_id": self.signal_id,
            "total_samples": self.total_samples,
            "no_data_count": self.no_data_count,
            "lag": {
                "avg_ms": round(mean(lag_list), 2) if lag_list else None,
                "min_ms": round(min(lag_list), 2) if lag_list else None,
                "max_ms": round(self.max_delay.total_seconds() * 1000, 2) if lag_list else None,
                "std_ms": round(stdev(lag_list), 2) if len(lag_list) > 1 else None,
                "samples": len(lag_list),
            },
        }


class LagTracker:
    """Thread-safe registry of SignalLagStats plus the global maximum."""

    def __init__(self):
        self._signals: Dict[int, SignalLagStats] = {}
        self._max_delay = timedelta(0)
        self._lock = threading.Lock()

    def record(self, signal_id: int, delay: Optional[timedelta]) -> timedelta:
        """Record one observation and return the global max delay."""
        with self._lock:
            stats = self._signals.get(signal_id)
            if stats is None:
                stats = SignalLagStats(signal_id=signal_id)
                self._signals[signal_id] = stats
            stats.record(delay)
            if delay is not None and delay > self._max_delay:
                self._max_delay = delay
            return self._max_delay

    @property
    def max_delay(self) -> timedelta:
        with self._lock:
            return self._max_delay

    def signal_max(self, signal_id: int) -> Optional[timedelta]:
        with self._lock:
            stats = self._signals.get(signal_id)
            return stats.max_delay if stats is not None else None

    def per_signal_max(self) -> Dict[int, timedelta]:
        with self._lock:
            return {
                sid: stats.max_delay
                for sid, stats in sorted(self._signals.items())
                if stats.total_samples > 0
            }

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "max_delay_ms": round(self._max_delay.total_seconds() * 1000, 2),
                "signals": [s.get_stats() for _, s in sorted(self._signals.items())],
            }
