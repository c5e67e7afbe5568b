"""Lifecycle tests for BenchRunner with an in-memory store and the real clock."""

import dataclasses
import threading
import time

import psycopg
import pytest
from sqlalchemy import exc as sa_exc

from ingest_bench.common.config import BenchConfig
from ingest_bench.errors import ChunkWriteError, ProbeQueryError, SchemaSetupError
from ingest_bench.runner import BenchRunner, LifecycleState
from ingest_bench.writer.results import WriteStage


@pytest.fixture
def config():
    return BenchConfig(
        signal_count=3,
        tick_interval_s=0.005,
        queue_capacity=100,
        warmup_seconds=0.2,
        observation_rounds=2,
        per_signal_poll_interval_s=0.01,
        drain_timeout_seconds=5.0,
    )


class TestHappyPath:
    """INIT -> ... -> DONE with every chunk accounted for."""

    def test_run_completes(self, config, fake_store):
        samples = []
        runner = BenchRunner(config, fake_store, on_sample=samples.append)
        assert runner.state is LifecycleState.INIT

        report = runner.run()

        assert report.state is LifecycleState.DONE
        assert runner.state is LifecycleState.DONE
        assert fake_store.schema_calls == 1
        assert report.chunks_emitted > 0
        assert report.chunks_written == report.chunks_emitted
        assert report.chunks_failed == 0
        assert report.rows_written == report.chunks_emitted * 3
        assert fake_store.count_rows() == report.rows_written
        assert len(samples) == 6
        assert set(report.per_signal_max_delay) == {0, 1, 2}
        assert report.max_delay.total_seconds() > 0
        assert "state=done" in report.summary_line()

    def test_chunks_written_in_emission_order(self, config, fake_store):
        BenchRunner(config, fake_store).run()

        assert fake_store.write_order == sorted(fake_store.write_order)
        assert fake_store.write_order[0] == 0

    def test_committed_chunks_are_complete(self, config, fake_store):
        BenchRunner(config, fake_store).run()

        stamps = {ts for _, ts in fake_store.rows}
        for ts in stamps:
            assert fake_store.rows_for_timestamp(ts) == [0, 1, 2]

    def test_write_failures_are_counted(self, config, fake_store):
        fake_store.fail_next.extend([
            ChunkWriteError(WriteStage.APPEND, psycopg.OperationalError("reset")),
            ChunkWriteError(WriteStage.COMMIT, psycopg.OperationalError("reset")),
        ])

        report = BenchRunner(config, fake_store).run()

        assert report.state is LifecycleState.DONE
        assert report.chunks_failed == 2
        assert report.rows_lost == 6
        assert report.failures_by_stage == {"append": 1, "commit": 1}
        assert report.chunks_written == report.chunks_emitted - 2


class TestFatalErrors:
    """Schema and probe errors abort the run."""

    def test_schema_failure(self, config, fake_store):
        fake_store.schema_error = Exception("permission denied")
        runner = BenchRunner(config, fake_store)

        with pytest.raises(SchemaSetupError):
            runner.run()

        assert runner.state is LifecycleState.FAILED
        assert runner.emitter.chunks_emitted == 0
        assert fake_store.copy_calls == 0

    def test_probe_failure(self, config, fake_store):
        fake_store.query_error = sa_exc.OperationalError("SELECT", {}, Exception("down"))
        runner = BenchRunner(config, fake_store)

        with pytest.raises(ProbeQueryError):
            runner.run()

        assert runner.state is LifecycleState.FAILED
        assert runner.queue.closed

    def test_unexpected_observation_error(self, config, fake_store, monkeypatch):
        def broken(signal_id):
            raise RuntimeError("decoder bug")

        monkeypatch.setattr(fake_store, "latest_timestamp", broken)
        runner = BenchRunner(config, fake_store)

        with pytest.raises(RuntimeError, match="decoder bug"):
            runner.run()

        assert runner.state is LifecycleState.FAILED
        assert runner.queue.closed


class TestCancellation:
    def test_request_stop_cuts_warmup(self, config, fake_store):
        slow = dataclasses.replace(config, warmup_seconds=30.0, observation_rounds=100)
        runner = BenchRunner(slow, fake_store)
        result = {}

        t = threading.Thread(target=lambda: result.setdefault("report", runner.run()))
        t.start()
        time.sleep(0.2)
        runner.request_stop()
        t.join(timeout=10.0)

        assert not t.is_alive()
        report = result["report"]
        assert report.state is LifecycleState.DONE
        assert report.chunks_written == report.chunks_emitted

    def test_invalid_config_rejected(self, config, fake_store):
        with pytest.raises(ValueError):
            BenchRunner(dataclasses.replace(config, signal_count=0), fake_store)
