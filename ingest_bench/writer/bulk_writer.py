"""Bulk writer: drains the ChunkQueue, one COPY transaction per chunk.

A chunk whose transaction fails at any stage is rolled back, optionally
retried (connection errors only), and otherwise counted as lost. The loop
itself never stops on a write failure and never re-enqueues a chunk.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Callable, Optional

from ..common.clock import Clock, SystemClock
from ..domain.reading import Chunk
from ..errors import ChunkWriteError
from ..metrics.collector import IngestMetrics
from ..queue.chunk_queue import ChunkQueue
from .results import ChunkResult, WriteStage
from .retry import RetryConfig

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5  # segundos


class BulkWriter:
    def __init__(
        self,
        queue: ChunkQueue[Chunk],
        store,
        metrics: Optional[IngestMetrics] = None,
        retry: Optional[RetryConfig] = None,
        clock: Optional[Clock] = None,
        stop_event: Optional[threading.Event] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_result: Optional[Callable[[ChunkResult], None]] = None,
    ):
        """Create the writer.

        Args:
            queue: Source of chunks, in emission order
            store: Object exposing ``copy_chunk(chunk) -> int`` (PointsStore)
            metrics: Optional prometheus collector
            retry: Retry policy (default: single attempt)
            clock: Clock for durations and backoff waits
            stop_event: Hard stop; the backlog is abandoned when set
            poll_interval: Max seconds per queue wait before rechecking stop
            on_result: Callback invoked with every ChunkResult
        """
        self._queue = queue
        self._store = store
        self._metrics = metrics
        self._retry = retry or RetryConfig()
        self._clock = clock or SystemClock()
        self._stop_event = stop_event or threading.Event()
        self._poll_interval = poll_interval
        self._on_result = on_result
        self._thread: Optional[threading.Thread] = None

        self._lock = threading.Lock()
        self.chunks_written = 0
        self.rows_written = 0
        self.chunks_failed = 0
        self.rows_lost = 0
        self.retries = 0
        self.failures_by_stage: Counter = Counter()
        self.last_sequence: Optional[int] = None

    def write_chunk(self, chunk: Chunk) -> ChunkResult:
        started = self._clock.monotonic()
        attempt = 0
        while True:
            attempt += 1
            try:
                rows = self._store.copy_chunk(chunk)
            except ChunkWriteError as e:
                if self._should_retry(e, attempt):
                    delay = self._retry.calculate_delay(attempt)
                    self.retries += 1
                    logger.warning(
                        "[WRITER] RETRY chunk=%d attempt=%d/%d stage=%s delay=%.3fs err=%s",
                        chunk.sequence, attempt, self._retry.max_attempts,
                        e.stage.value, delay, e.cause,
                    )
                    if not self._clock.wait(self._stop_event, delay):
                        continue
                return ChunkResult.failed(
                    sequence=chunk.sequence,
                    rows=len(chunk),
                    stage=e.stage,
                    reason=str(e.cause),
                    attempts=attempt,
                    duration_s=self._clock.monotonic() - started,
                )
            except Exception as e:
                logger.exception("[WRITER] Unexpected error writing chunk=%d", chunk.sequence)
                return ChunkResult.failed(
                    sequence=chunk.sequence,
                    rows=len(chunk),
                    stage=WriteStage.UNEXPECTED,
                    reason=repr(e),
                    attempts=attempt,
                    duration_s=self._clock.monotonic() - started,
                )
            return ChunkResult.success(
                sequence=chunk.sequence,
                rows=rows,
                attempts=attempt,
                duration_s=self._clock.monotonic() - started,
            )

    def _should_retry(self, error: ChunkWriteError, attempt: int) -> bool:
        if attempt >= self._retry.max_attempts:
            return False
        # A failed COMMIT may still have been applied server-side.
        if error.stage is WriteStage.COMMIT:
            return False
        return self._retry.is_retryable(error.cause)

    def handle(self, chunk: Chunk) -> ChunkResult:
        """Write one chunk and account for the outcome."""
        if self.last_sequence is not None and chunk.sequence <= self.last_sequence:
            logger.warning(
                "[WRITER] OUT_OF_ORDER chunk=%d last=%d", chunk.sequence, self.last_sequence,
            )
        self.last_sequence = chunk.sequence

        result = self.write_chunk(chunk)
        with self._lock:
            if result.ok:
                self.chunks_written += 1
                self.rows_written += result.rows
            else:
                self.chunks_failed += 1
                self.rows_lost += result.rows
                self.failures_by_stage[result.stage.value] += 1

        if result.ok:
            logger.debug("[WRITER] chunk=%d rows=%d %.1fms",
                         result.sequence, result.rows, result.duration_s * 1000)
            if self._metrics is not None:
                self._metrics.record_written(result.rows, result.duration_s)
        else:
            logger.error(
                "[WRITER] Chunk lost chunk=%d rows=%d stage=%s attempts=%d err=%s (lost so far: %d)",
                result.sequence, result.rows, result.stage.value, result.attempts,
                result.reason, self.chunks_failed,
            )
            if self._metrics is not None:
                self._metrics.record_failed(result.stage.value, result.duration_s)

        if self._on_result is not None:
            self._on_result(result)
        return result

    def run(self) -> None:
        logger.info("[WRITER] Started")
        while True:
            if self._stop_event.is_set():
                logger.warning("[WRITER] Hard stop, %d chunk(s) left in queue", self._queue.size)
                break

            chunk = self._queue.get(timeout=self._poll_interval)
            if self._metrics is not None:
                self._metrics.set_queue_depth(self._queue.size)
            if chunk is None:
                if self._queue.closed:
                    logger.info("[WRITER] Queue drained")
                    break
                continue

            try:
                self.handle(chunk)
            except Exception:
                logger.exception("[WRITER] Error handling chunk=%d", chunk.sequence)
        logger.info("[WRITER] Stopped. %s", self.get_stats())

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="bulk-writer")
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop to end. Returns True if the thread has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "chunks_written": self.chunks_written,
                "rows_written": self.rows_written,
                "chunks_failed": self.chunks_failed,
                "rows_lost": self.rows_lost,
                "retries": self.retries,
                "failures_by_stage": dict(self.failures_by_stage),
            }
