"""Prometheus metrics for the ingestion pipeline.

Each ``IngestMetrics`` owns its own registry so several runs (or tests) in
one process do not collide on metric names.
"""

from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)


class IngestMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.chunks = Counter(
            "ingest_bench_chunks_total",
            "Chunks handled by the bulk writer",
            ["status"],  # written, failed
            registry=self.registry,
        )
        self.rows_written = Counter(
            "ingest_bench_rows_written_total",
            "Readings committed to the store",
            registry=self.registry,
        )
        self.chunk_failures = Counter(
            "ingest_bench_chunk_failures_total",
            "Chunks lost, by failing transaction stage",
            ["stage"],
            registry=self.registry,
        )
        self.queue_depth = Gauge(
            "ingest_bench_queue_depth",
            "Chunks waiting in the hand-off queue",
            registry=self.registry,
        )
        self.write_seconds = Histogram(
            "ingest_bench_write_seconds",
            "Duration of one chunk COPY transaction",
            buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self.registry,
        )
        self.lag_seconds = Gauge(
            "ingest_bench_lag_seconds",
            "Last observed ingestion lag per signal",
            ["signal_id"],
            registry=self.registry,
        )
        self.max_lag_seconds = Gauge(
            "ingest_bench_max_lag_seconds",
            "Worst ingestion lag observed in this run",
            registry=self.registry,
        )

    def record_written(self, rows: int, duration_s: float) -> None:
        self.chunks.labels(status="written").inc()
        self.rows_written.inc(rows)
        self.write_seconds.observe(duration_s)

    def record_failed(self, stage: str, duration_s: float) -> None:
        self.chunks.labels(status="failed").inc()
        self.chunk_failures.labels(stage=stage).inc()
        self.write_seconds.observe(duration_s)

    def set_queue_depth(self, depth: int) -> None:
        self.queue_depth.set(depth)

    def record_lag(self, signal_id: int, lag_s: float, max_lag_s: float) -> None:
        self.lag_seconds.labels(signal_id=str(signal_id)).set(lag_s)
        self.max_lag_seconds.set(max_lag_s)

    def value(self, name: str, labels: Optional[dict] = None) -> float:
        """Current sample value, 0.0 when the series has not been touched yet."""
        result = self.registry.get_sample_value(name, labels or {})
        return result if result is not None else 0.0

    def serve(self, port: int) -> None:
        start_http_server(port, registry=self.registry)
        logger.info("[METRICS] Exporter listening on :%d", port)
