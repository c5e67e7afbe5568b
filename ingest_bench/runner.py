"""Run orchestration.

Lifecycle:
    INIT -> SCHEMA_SETUP -> RUNNING -> DRAINING_OBSERVATION_WINDOW -> DONE
Any fatal error (schema setup, probe query) moves to FAILED and re-raises.

RUNNING starts the writer and emitter threads and waits out the warm-up.
DRAINING_OBSERVATION_WINDOW runs the latency probe while the pipeline keeps
going. Shutdown then stops the emitter, closes the queue and lets the writer
drain the backlog.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Callable, Dict, Optional

from .common.clock import Clock, SystemClock
from .common.config import BenchConfig
from .domain.reading import Chunk
from .emitter.emitter import SignalEmitter
from .errors import IngestBenchError
from .metrics.collector import IngestMetrics
from .probe.lag_stats import LagSample, LagTracker
from .probe.latency_probe import LatencyProbe
from .queue.chunk_queue import ChunkQueue
from .writer.bulk_writer import BulkWriter
from .writer.retry import RetryConfig

logger = logging.getLogger(__name__)

_JOIN_SLICE_S = 0.2
_EMITTER_JOIN_TIMEOUT_S = 5.0


class LifecycleState(Enum):
    INIT = "init"
    SCHEMA_SETUP = "schema_setup"
    RUNNING = "running"
    DRAINING_OBSERVATION_WINDOW = "draining_observation_window"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunReport:
    state: LifecycleState
    chunks_emitted: int = 0
    chunks_written: int = 0
    chunks_failed: int = 0
    rows_written: int = 0
    rows_lost: int = 0
    failures_by_stage: Dict[str, int] = field(default_factory=dict)
    max_delay: timedelta = timedelta(0)
    per_signal_max_delay: Dict[int, timedelta] = field(default_factory=dict)
    queue: dict = field(default_factory=dict)

    def summary_line(self) -> str:
        return (
            f"state={self.state.value} emitted={self.chunks_emitted} "
            f"written={self.chunks_written} failed={self.chunks_failed} "
            f"rows={self.rows_written} rows_lost={self.rows_lost} "
            f"max_delay={self.max_delay.total_seconds() * 1000:.1f}ms"
        )


class BenchRunner:
    def __init__(
        self,
        config: BenchConfig,
        store,
        clock: Optional[Clock] = None,
        metrics: Optional[IngestMetrics] = None,
        on_sample: Optional[Callable[[LagSample], None]] = None,
    ):
        """Wire the pipeline.

        Args:
            config: Validated run configuration
            store: PointsStore (or an object with the same methods)
            clock: Injectable clock shared by every component
            metrics: Prometheus collector, created if omitted
            on_sample: Called with every probe observation
        """
        self._config = config.validate()
        self._store = store
        self._clock = clock or SystemClock()
        self.metrics = metrics or IngestMetrics()

        self._stop_event = threading.Event()
        self._writer_stop = threading.Event()
        self._state = LifecycleState.INIT
        self._state_lock = threading.Lock()

        self.queue: ChunkQueue[Chunk] = ChunkQueue(config.queue_capacity)
        self.emitter = SignalEmitter(config, self.queue, self._clock, self._stop_event)
        self.writer = BulkWriter(
            self.queue,
            store,
            metrics=self.metrics,
            retry=RetryConfig(max_attempts=config.write_max_attempts),
            clock=self._clock,
            stop_event=self._writer_stop,
        )
        self.probe = LatencyProbe(
            store,
            signal_count=config.signal_count,
            rounds=config.observation_rounds,
            poll_interval_s=config.per_signal_poll_interval_s,
            clock=self._clock,
            stop_event=self._stop_event,
            metrics=self.metrics,
            on_sample=on_sample,
        )
        self._probe_error: Optional[BaseException] = None

    @property
    def state(self) -> LifecycleState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: LifecycleState) -> None:
        with self._state_lock:
            previous, self._state = self._state, state
        logger.info("[RUNNER] %s -> %s", previous.value, state.value)

    def request_stop(self) -> None:
        """Cancel the warm-up and observation window; shutdown still drains."""
        self._stop_event.set()

    def run(self) -> RunReport:
        try:
            self._set_state(LifecycleState.SCHEMA_SETUP)
            self._store.recreate_schema()

            self._set_state(LifecycleState.RUNNING)
            self.writer.start()
            self.emitter.start()
            if self._config.warmup_seconds > 0:
                logger.info("[RUNNER] Warm-up %.1fs", self._config.warmup_seconds)
                self._clock.wait(self._stop_event, self._config.warmup_seconds)

            self._set_state(LifecycleState.DRAINING_OBSERVATION_WINDOW)
            self._observe()
        except Exception:
            self._set_state(LifecycleState.FAILED)
            self._shutdown(drain=False)
            raise
        except KeyboardInterrupt:
            logger.warning("[RUNNER] Interrupted, shutting down")
            self.request_stop()
            self._shutdown(drain=True)
            self._set_state(LifecycleState.DONE)
            raise

        self._shutdown(drain=True)
        self._set_state(LifecycleState.DONE)
        return self.report()

    def _observe(self) -> LagTracker:
        thread = threading.Thread(target=self._probe_main, daemon=True, name="latency-probe")
        thread.start()
        while thread.is_alive():
            thread.join(_JOIN_SLICE_S)
        if self._probe_error is not None:
            raise self._probe_error
        return self.probe.tracker

    def _probe_main(self) -> None:
        try:
            self.probe.run()
        except IngestBenchError as e:
            logger.error("[RUNNER] Probe failed: %s", e)
            self._probe_error = e
        except BaseException as e:
            logger.exception("[RUNNER] Observation thread crashed")
            self._probe_error = e

    def _shutdown(self, drain: bool) -> None:
        self._stop_event.set()
        self.emitter.stop()
        self.emitter.join(_EMITTER_JOIN_TIMEOUT_S)
        self.queue.close()

        if not drain:
            self.writer.stop()
        pending = self.queue.size
        if drain and pending:
            logger.info("[RUNNER] Draining %d chunk(s)", pending)
        if not self.writer.join(self._config.drain_timeout_seconds):
            logger.warning(
                "[RUNNER] Writer did not drain within %.1fs, abandoning %d chunk(s)",
                self._config.drain_timeout_seconds, self.queue.size,
            )
            self.writer.stop()
            self.writer.join(_EMITTER_JOIN_TIMEOUT_S)

    def report(self) -> RunReport:
        writer_stats = self.writer.get_stats()
        return RunReport(
            state=self.state,
            chunks_emitted=self.emitter.chunks_emitted,
            chunks_written=writer_stats["chunks_written"],
            chunks_failed=writer_stats["chunks_failed"],
            rows_written=writer_stats["rows_written"],
            rows_lost=writer_stats["rows_lost"],
            failures_by_stage=writer_stats["failures_by_stage"],
            max_delay=self.probe.tracker.max_delay,
            per_signal_max_delay=self.probe.tracker.per_signal_max(),
            queue=self.queue.get_stats(),
        )
