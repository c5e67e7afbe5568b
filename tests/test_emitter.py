"""Tests for the ticker and the signal emitter."""

import threading
import time
from datetime import timedelta

import pytest

from ingest_bench.common.config import BenchConfig
from ingest_bench.emitter.emitter import SignalEmitter
from ingest_bench.emitter.ticker import Ticker
from ingest_bench.queue.chunk_queue import ChunkQueue


class StopAfterQueue(ChunkQueue):
    """Sets the stop event once ``limit`` items were enqueued."""

    def __init__(self, capacity, stop_event, limit):
        super().__init__(capacity)
        self._stop = stop_event
        self._limit = limit

    def put(self, item, timeout=None, stop_event=None):
        ok = super().put(item, timeout=timeout, stop_event=stop_event)
        if self.get_stats()["enqueued"] >= self._limit:
            self._stop.set()
        return ok


def drain(queue):
    items = []
    while True:
        item = queue.get(timeout=0)
        if item is None:
            return items
        items.append(item)


# =============================================================================
# TICKER
# =============================================================================

class TestTicker:
    """Cadence and cancellation with a fake clock."""

    def test_fixed_cadence(self, fake_clock):
        ticker = Ticker(0.02, clock=fake_clock)

        ticks = []
        for tick in ticker:
            ticks.append(tick)
            if tick == 4:
                break

        assert ticks == [0, 1, 2, 3, 4]
        assert fake_clock.waits == pytest.approx([0.02] * 4)

    def test_work_time_is_subtracted(self, fake_clock):
        ticker = Ticker(0.02, clock=fake_clock)

        for tick in ticker:
            fake_clock.advance(0.005)
            if tick == 3:
                break

        assert fake_clock.waits == pytest.approx([0.015] * 3)

    def test_small_lateness_is_caught_up(self, fake_clock):
        ticker = Ticker(0.02, clock=fake_clock)

        for tick in ticker:
            if tick == 0:
                fake_clock.advance(0.03)
            if tick == 2:
                break

        assert fake_clock.waits == pytest.approx([0.0, 0.01])
        assert ticker.reanchors == 0

    def test_large_lateness_reanchors(self, fake_clock):
        ticker = Ticker(0.02, clock=fake_clock)

        for tick in ticker:
            if tick == 0:
                fake_clock.advance(0.1)
            if tick == 2:
                break

        assert ticker.reanchors == 1
        assert fake_clock.waits == pytest.approx([0.0, 0.02])

    def test_stop_ends_iteration(self, fake_clock):
        stop = threading.Event()
        ticker = Ticker(0.02, clock=fake_clock, stop_event=stop)

        ticks = []
        for tick in ticker:
            ticks.append(tick)
            if tick == 2:
                ticker.stop()

        assert ticks == [0, 1, 2]

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            Ticker(0)


# =============================================================================
# EMITTER
# =============================================================================

class TestEmitter:
    """Chunks per tick, one capture instant per chunk."""

    def test_emits_full_chunks(self, fake_clock):
        stop = threading.Event()
        queue = StopAfterQueue(100, stop, limit=5)
        config = BenchConfig(signal_count=4, tick_interval_s=0.02)
        emitter = SignalEmitter(config, queue, clock=fake_clock, stop_event=stop)

        emitter.run()

        chunks = drain(queue)
        assert [c.sequence for c in chunks] == [0, 1, 2, 3, 4]
        assert all(len(c) == 4 for c in chunks)
        assert emitter.chunks_emitted == 5
        assert emitter.readings_emitted == 20
        for chunk in chunks:
            assert {r.timestamp for r in chunk} == {chunk.captured_at}
            assert all(r.content == config.content for r in chunk)

    def test_capture_instants_follow_cadence(self, fake_clock):
        stop = threading.Event()
        queue = StopAfterQueue(100, stop, limit=3)
        emitter = SignalEmitter(
            BenchConfig(signal_count=1, tick_interval_s=0.02), queue,
            clock=fake_clock, stop_event=stop,
        )

        emitter.run()

        stamps = [c.captured_at for c in drain(queue)]
        assert stamps[1] - stamps[0] == timedelta(milliseconds=20)
        assert stamps[2] - stamps[1] == timedelta(milliseconds=20)

    def test_identical_clock_readings_are_disambiguated(self, fake_clock):
        fake_clock.frozen_now = True
        stop = threading.Event()
        queue = StopAfterQueue(100, stop, limit=4)
        emitter = SignalEmitter(
            BenchConfig(signal_count=2), queue, clock=fake_clock, stop_event=stop,
        )

        emitter.run()

        stamps = [c.captured_at for c in drain(queue)]
        assert stamps == sorted(set(stamps))
        assert stamps[-1] - stamps[0] == timedelta(microseconds=3)
        assert emitter.clock_adjustments == 3

    def test_backpressure_blocks_emitter(self):
        queue = ChunkQueue(capacity=2)
        emitter = SignalEmitter(BenchConfig(signal_count=3, tick_interval_s=0.001), queue)
        emitter.start()
        try:
            time.sleep(0.3)
            assert emitter.chunks_emitted == 2
            assert queue.is_full

            assert queue.get(timeout=1.0).sequence == 0
            deadline = time.monotonic() + 2.0
            while emitter.chunks_emitted < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert emitter.chunks_emitted == 3
        finally:
            emitter.stop()
            emitter.join(timeout=2.0)

    def test_stops_when_queue_closed(self):
        queue = ChunkQueue(capacity=1)
        emitter = SignalEmitter(BenchConfig(signal_count=1, tick_interval_s=0.001), queue)
        emitter.start()
        time.sleep(0.1)

        queue.close()
        emitter.join(timeout=2.0)

        assert emitter._thread is not None and not emitter._thread.is_alive()
