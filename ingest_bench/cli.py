"""CLI entry point for the ingest bench."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from typing import Optional, Sequence

from .common.config import BenchConfig, get_settings
from .common.db import check_connection, get_engine
from .errors import IngestBenchError
from .metrics.collector import IngestMetrics
from .probe.lag_stats import LagSample
from .probe.latency_probe import format_delay
from .runner import BenchRunner
from .store.points import PointsStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ingest-bench",
        description="Synthetic signal load generator with bulk COPY ingestion and lag probe",
    )
    p.add_argument("--database-url", help="SQLAlchemy URL (postgresql+psycopg://...)")
    p.add_argument("--signals", type=int, help="number of signals per chunk")
    p.add_argument("--tick-ms", type=float, help="emission interval in milliseconds")
    p.add_argument("--queue-capacity", type=int, help="max chunks waiting for the writer")
    p.add_argument("--rounds", type=int, help="probe observation rounds")
    p.add_argument("--poll-seconds", type=float, help="probe sleep between signals")
    p.add_argument("--warmup-seconds", type=float, help="pipeline warm-up before probing")
    p.add_argument("--write-attempts", type=int, help="attempts per chunk (1 = no retry)")
    p.add_argument("--metrics-port", type=int, help="serve prometheus metrics on this port")
    p.add_argument("--log-level", default="INFO", help="logging level (default INFO)")
    return p


def config_from_args(args: argparse.Namespace, base: Optional[BenchConfig] = None) -> BenchConfig:
    cfg = base or get_settings()
    overrides = {}
    if args.database_url is not None:
        overrides["database_url"] = args.database_url
    if args.signals is not None:
        overrides["signal_count"] = args.signals
    if args.tick_ms is not None:
        overrides["tick_interval_s"] = args.tick_ms / 1000.0
    if args.queue_capacity is not None:
        overrides["queue_capacity"] = args.queue_capacity
    if args.rounds is not None:
        overrides["observation_rounds"] = args.rounds
    if args.poll_seconds is not None:
        overrides["per_signal_poll_interval_s"] = args.poll_seconds
    if args.warmup_seconds is not None:
        overrides["warmup_seconds"] = args.warmup_seconds
    if args.write_attempts is not None:
        overrides["write_max_attempts"] = args.write_attempts
    if args.metrics_port is not None:
        overrides["metrics_port"] = args.metrics_port
    return dataclasses.replace(cfg, **overrides).validate()


def print_sample(sample: LagSample) -> None:
    if sample.delay is None:
        print(f"signal {sample.signal_id}: no data", flush=True)
        return
    print(
        f"round {sample.round_index} signal {sample.signal_id}: "
        f"Current delay: {format_delay(sample.delay)} - Max delay: {format_delay(sample.max_delay)}",
        flush=True,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        cfg = config_from_args(args)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL

    logger.info("Ingest bench started")
    logger.info(
        "Config: signals=%d tick=%.1fms queue=%d rounds=%d poll=%.1fs warmup=%.1fs attempts=%d",
        cfg.signal_count, cfg.tick_interval_s * 1000, cfg.queue_capacity,
        cfg.observation_rounds, cfg.per_signal_poll_interval_s, cfg.warmup_seconds,
        cfg.write_max_attempts,
    )

    metrics = IngestMetrics()
    engine = None
    try:
        if cfg.metrics_port:
            metrics.serve(cfg.metrics_port)
        engine = get_engine(cfg)
        check_connection(engine)
        runner = BenchRunner(cfg, PointsStore(engine), metrics=metrics, on_sample=print_sample)
        report = runner.run()
    except IngestBenchError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        # Exporter bind, connection check and other startup failures.
        logger.exception("Fatal error")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL
    finally:
        if engine is not None:
            engine.dispose()

    print(report.summary_line())
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
