from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url

from .config import BenchConfig


logger = logging.getLogger(__name__)


def get_engine(config: BenchConfig) -> Engine:
    url = make_url(config.database_url)

    # Connection parameters only, never the password.
    logger.info(
        "[DB] Create engine driver=%s host=%s port=%s db=%s user=%s",
        url.drivername,
        url.host or "<socket>",
        url.port,
        url.database,
        url.username,
    )

    # Writer and probe each hold one connection; a third covers schema setup.
    engine = create_engine(
        url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=2,
        future=True,
    )
    return engine


def check_connection(engine: Engine) -> None:
    """Round-trip ``SELECT 1``. Raises on failure."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("[DB] Connection test OK")
