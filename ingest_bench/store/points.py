"""Points table access: bulk COPY of one chunk and the probe's lag query.

COPY goes through the psycopg 3 cursor of the pooled SQLAlchemy connection,
inside the SQLAlchemy transaction, so a failure at any stage rolls the whole
chunk back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import psycopg
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..domain.reading import Chunk
from ..errors import ChunkWriteError, ProbeQueryError
from ..writer.results import WriteStage
from .schema import DEFAULT_TABLE, checked_table_name, recreate_schema

logger = logging.getLogger(__name__)

# Sampling bound of the latest-timestamp query.
LATEST_SAMPLE_LIMIT = 1000

DB_ERRORS = (SQLAlchemyError, psycopg.Error)


class PointsStore:
    def __init__(self, engine: Engine, table: str = DEFAULT_TABLE):
        self._engine = engine
        self._table = checked_table_name(table)
        self._copy_sql = f"COPY {self._table} (signal_id, timestamp, content) FROM STDIN"
        self._latest_sql = text(
            f"SELECT timestamp FROM {self._table} "
            "WHERE signal_id = :signal_id "
            "ORDER BY timestamp DESC LIMIT :limit"
        )
        self._count_sql = text(f"SELECT count(*) FROM {self._table}")

    @property
    def table(self) -> str:
        return self._table

    def recreate_schema(self) -> None:
        recreate_schema(self._engine, self._table)

    def copy_chunk(self, chunk: Chunk) -> int:
        """Load every reading of ``chunk`` in one transaction.

        Returns:
            Number of rows copied (``len(chunk)``)

        Raises:
            ChunkWriteError: carrying the stage that failed; nothing was committed
                unless the failing stage is COMMIT itself.
        """
        stage = WriteStage.BEGIN
        try:
            with self._engine.connect() as conn:
                with conn.begin():
                    stage = WriteStage.PREPARE
                    cursor = conn.connection.cursor()
                    try:
                        with cursor.copy(self._copy_sql) as copy:
                            stage = WriteStage.APPEND
                            for row in chunk.copy_rows():
                                copy.write_row(row)
                            stage = WriteStage.FINALIZE
                    finally:
                        cursor.close()
                    stage = WriteStage.COMMIT
        except DB_ERRORS as e:
            raise ChunkWriteError(stage, e, chunk.sequence) from e
        return len(chunk)

    def latest_timestamp(self, signal_id: int) -> Optional[datetime]:
        """Most recent persisted timestamp for ``signal_id`` (aware UTC), or None."""
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    self._latest_sql,
                    {"signal_id": signal_id, "limit": LATEST_SAMPLE_LIMIT},
                ).first()
        except SQLAlchemyError as e:
            raise ProbeQueryError(signal_id, e) from e

        if row is None:
            return None
        ts = row[0]
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    def count_rows(self) -> int:
        with self._engine.connect() as conn:
            return int(conn.execute(self._count_sql).scalar_one())
