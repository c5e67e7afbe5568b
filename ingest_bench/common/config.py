from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from ..domain.reading import PosePayload


DEFAULT_DATABASE_URL = (
    "postgresql+psycopg://metrics_server@localhost/metrics_server?sslmode=disable"
)


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class BenchConfig:
    """Immutable run configuration passed to every component."""

    tick_interval_s: float = 0.020
    signal_count: int = 60
    payload_template: PosePayload = field(default_factory=PosePayload)
    database_url: str = DEFAULT_DATABASE_URL
    queue_capacity: int = 5000
    observation_rounds: int = 8
    per_signal_poll_interval_s: float = 10.0

    warmup_seconds: float = 20.0
    write_max_attempts: int = 1
    drain_timeout_seconds: float = 30.0
    metrics_port: int = 0  # 0 = no exporter

    def validate(self) -> "BenchConfig":
        if self.tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be > 0")
        if self.signal_count < 1:
            raise ValueError("signal_count must be >= 1")
        if self.queue_capacity < 1:
            raise ValueError("queue_capacity must be >= 1")
        if self.observation_rounds < 0:
            raise ValueError("observation_rounds must be >= 0")
        if self.per_signal_poll_interval_s < 0:
            raise ValueError("per_signal_poll_interval_s must be >= 0")
        if self.warmup_seconds < 0:
            raise ValueError("warmup_seconds must be >= 0")
        if self.write_max_attempts < 1:
            raise ValueError("write_max_attempts must be >= 1")
        if self.metrics_port < 0:
            raise ValueError("metrics_port must be >= 0")
        return self

    @property
    def content(self) -> str:
        """JSON text stored in every reading's content column."""
        return self.payload_template.to_content()


def get_settings() -> BenchConfig:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("INGEST_BENCH_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    tick_ms = float(os.getenv("INGEST_BENCH_TICK_MS", "20"))
    signal_count = int(os.getenv("INGEST_BENCH_SIGNALS", "60"))
    database_url = os.getenv("INGEST_BENCH_DATABASE_URL", DEFAULT_DATABASE_URL)
    queue_capacity = int(os.getenv("INGEST_BENCH_QUEUE_CAPACITY", "5000"))
    rounds = int(os.getenv("INGEST_BENCH_ROUNDS", "8"))
    poll_seconds = float(os.getenv("INGEST_BENCH_POLL_SECONDS", "10"))
    warmup_seconds = float(os.getenv("INGEST_BENCH_WARMUP_SECONDS", "20"))
    write_attempts = int(os.getenv("INGEST_BENCH_WRITE_ATTEMPTS", "1"))
    drain_timeout = float(os.getenv("INGEST_BENCH_DRAIN_TIMEOUT_SECONDS", "30"))
    metrics_port = int(os.getenv("INGEST_BENCH_METRICS_PORT", "0"))

    return BenchConfig(
        tick_interval_s=tick_ms / 1000.0,
        signal_count=signal_count,
        database_url=database_url,
        queue_capacity=queue_capacity,
        observation_rounds=rounds,
        per_signal_poll_interval_s=poll_seconds,
        warmup_seconds=warmup_seconds,
        write_max_attempts=write_attempts,
        drain_timeout_seconds=drain_timeout,
        metrics_port=metrics_port,
    )
