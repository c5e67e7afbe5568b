"""Shared fixtures: deterministic clock and in-memory store."""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from psycopg import errors as pg_errors

from ingest_bench.errors import ChunkWriteError, ProbeQueryError, SchemaSetupError
from ingest_bench.writer.results import WriteStage


class FakeClock:
    """Clock whose waits return immediately after advancing time."""

    def __init__(self, start=None):
        self._now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._mono = 0.0
        self._lock = threading.Lock()
        self.waits = []
        self.frozen_now = False

    def now(self):
        with self._lock:
            return self._now

    def monotonic(self):
        with self._lock:
            return self._mono

    def advance(self, seconds):
        with self._lock:
            self._mono += seconds
            if not self.frozen_now:
                self._now += timedelta(seconds=seconds)

    def wait(self, stop_event, seconds):
        if stop_event.is_set():
            return True
        self.waits.append(seconds)
        self.advance(seconds)
        return stop_event.is_set()


class FakeStore:
    """In-memory stand-in for PointsStore."""

    def __init__(self):
        self._lock = threading.Lock()
        self.rows = {}
        self.write_order = []
        self.copy_calls = 0
        self.schema_calls = 0
        self.fail_next = []  # exceptions raised by the next copy calls
        self.schema_error = None
        self.query_error = None

    def recreate_schema(self):
        self.schema_calls += 1
        if self.schema_error is not None:
            raise SchemaSetupError(str(self.schema_error))
        with self._lock:
            self.rows.clear()

    def copy_chunk(self, chunk):
        with self._lock:
            self.copy_calls += 1
            if self.fail_next:
                error = self.fail_next.pop(0)
                error.sequence = chunk.sequence
                raise error
            keys = [(r.signal_id, r.timestamp) for r in chunk]
            if any(key in self.rows for key in keys):
                raise ChunkWriteError(
                    WriteStage.FINALIZE,
                    pg_errors.UniqueViolation("duplicate key value violates unique constraint"),
                    chunk.sequence,
                )
            for reading in chunk:
                self.rows[(reading.signal_id, reading.timestamp)] = reading.content
            self.write_order.append(chunk.sequence)
            return len(chunk)

    def latest_timestamp(self, signal_id):
        if self.query_error is not None:
            raise ProbeQueryError(signal_id, self.query_error)
        with self._lock:
            stamps = [ts for sid, ts in self.rows if sid == signal_id]
        return max(stamps) if stamps else None

    def count_rows(self):
        with self._lock:
            return len(self.rows)

    def rows_for_timestamp(self, ts):
        with self._lock:
            return sorted(sid for sid, stamp in self.rows if stamp == ts)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_store():
    return FakeStore()
