"""Synthetic signal emitter.

Each tick builds one Chunk (one Reading per signal, single capture instant)
and pushes it onto the ChunkQueue, blocking while the queue is full.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from ..common.clock import Clock, SystemClock
from ..common.config import BenchConfig
from ..domain.reading import Chunk
from ..errors import QueueClosed
from ..queue.chunk_queue import ChunkQueue
from .ticker import Ticker

logger = logging.getLogger(__name__)

# Resolution of the PostgreSQL timestamp column.
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


class SignalEmitter:
    def __init__(
        self,
        config: BenchConfig,
        queue: ChunkQueue[Chunk],
        clock: Optional[Clock] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self._signal_count = config.signal_count
        self._content = config.content
        self._queue = queue
        self._clock = clock or SystemClock()
        self._stop_event = stop_event or threading.Event()
        self._ticker = Ticker(config.tick_interval_s, self._clock, self._stop_event)
        self._thread: Optional[threading.Thread] = None
        self._last_capture: Optional[datetime] = None

        self.chunks_emitted = 0
        self.readings_emitted = 0
        self.clock_adjustments = 0

    def next_capture_instant(self) -> datetime:
        """Capture timestamp for the next chunk, strictly after the previous one."""
        ts = self._clock.now()
        if self._last_capture is not None and ts <= self._last_capture:
            ts = self._last_capture + TIMESTAMP_RESOLUTION
            self.clock_adjustments += 1
        self._last_capture = ts
        return ts

    def build_chunk(self) -> Chunk:
        return Chunk.build(
            sequence=self.chunks_emitted,
            captured_at=self.next_capture_instant(),
            signal_count=self._signal_count,
            content=self._content,
        )

    def run(self) -> None:
        logger.info(
            "[EMITTER] Started signals=%d interval=%.1fms",
            self._signal_count, self._ticker.interval * 1000,
        )
        try:
            for _ in self._ticker:
                chunk = self.build_chunk()
                if not self._queue.put(chunk, stop_event=self._stop_event):
                    break
                self.chunks_emitted += 1
                self.readings_emitted += len(chunk)
        except QueueClosed:
            logger.info("[EMITTER] Queue closed, stopping")
        logger.info(
            "[EMITTER] Stopped chunks=%d readings=%d clock_adjustments=%d",
            self.chunks_emitted, self.readings_emitted, self.clock_adjustments,
        )

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="signal-emitter")
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
