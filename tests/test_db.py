"""Tests for engine creation helpers."""

from unittest.mock import MagicMock

from ingest_bench.common.config import BenchConfig
from ingest_bench.common.db import check_connection, get_engine


def test_engine_uses_configured_url():
    engine = get_engine(BenchConfig(database_url="postgresql+psycopg://bench@dbhost:5433/metrics"))
    try:
        assert engine.url.drivername == "postgresql+psycopg"
        assert engine.url.host == "dbhost"
        assert engine.url.port == 5433
        assert engine.url.database == "metrics"
    finally:
        engine.dispose()


def test_check_connection_runs_select_1():
    engine = MagicMock()

    check_connection(engine)

    conn = engine.connect.return_value.__enter__.return_value
    assert str(conn.execute.call_args.args[0]) == "SELECT 1"
