"""Destructive (re)creation of the points table."""

from __future__ import annotations

import logging
import re

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import SchemaSetupError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "points"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def checked_table_name(table: str) -> str:
    if not _IDENTIFIER.match(table):
        raise ValueError(f"invalid table name: {table!r}")
    return table


def schema_statements(table: str = DEFAULT_TABLE) -> list[str]:
    table = checked_table_name(table)
    return [
        f"DROP TABLE IF EXISTS {table}",
        f"""CREATE TABLE {table} (
            signal_id integer,
            timestamp timestamp,
            content   jsonb,
            PRIMARY KEY (signal_id, timestamp)
        )""",
    ]


def recreate_schema(engine: Engine, table: str = DEFAULT_TABLE) -> None:
    """Drop and recreate ``table``. Prior data is lost.

    Raises:
        SchemaSetupError: any database error; startup must abort.
    """
    logger.info("[SCHEMA] Recreating table %s", table)
    try:
        with engine.begin() as conn:
            for statement in schema_statements(table):
                conn.execute(text(statement))
    except SQLAlchemyError as e:
        logger.error("[SCHEMA] Recreate %s failed: %s", table, e)
        raise SchemaSetupError(f"could not recreate table {table}: {e}") from e
    logger.info("[SCHEMA] Table %s ready", table)
