"""Exception hierarchy for the ingest bench.

Fatal errors (schema setup, probe queries) propagate up to the CLI.
Chunk write errors are caught by the writer, counted and logged.
"""

from __future__ import annotations

from typing import Optional


class IngestBenchError(Exception):
    """Base class for all bench errors."""


class SchemaSetupError(IngestBenchError):
    """The points table could not be (re)created."""


class ProbeQueryError(IngestBenchError):
    """A latency probe query failed."""

    def __init__(self, signal_id: int, cause: BaseException):
        super().__init__(f"latest timestamp query failed for signal {signal_id}: {cause}")
        self.signal_id = signal_id
        self.cause = cause


class ChunkWriteError(IngestBenchError):
    """A stage of a chunk's COPY transaction failed.

    The transaction has already been rolled back when this is raised.
    """

    def __init__(self, stage, cause: BaseException, sequence: Optional[int] = None):
        super().__init__(f"chunk {sequence} failed at {stage.value}: {cause}")
        self.stage = stage
        self.cause = cause
        self.sequence = sequence


class QueueClosed(IngestBenchError):
    """put() was called on a closed queue."""
