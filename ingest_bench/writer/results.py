"""Per-chunk write results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WriteStage(Enum):
    """Stages of one chunk's COPY transaction, in execution order."""
    BEGIN = "begin"
    PREPARE = "prepare"
    APPEND = "append"
    FINALIZE = "finalize"
    COMMIT = "commit"
    # Not raised by the store as a ChunkWriteError (driver or programming bug).
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ChunkResult:
    sequence: int
    rows: int
    ok: bool
    attempts: int = 1
    duration_s: float = 0.0
    stage: Optional[WriteStage] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, sequence: int, rows: int, attempts: int, duration_s: float) -> "ChunkResult":
        return cls(sequence=sequence, rows=rows, ok=True, attempts=attempts, duration_s=duration_s)

    @classmethod
    def failed(
        cls,
        sequence: int,
        rows: int,
        stage: WriteStage,
        reason: str,
        attempts: int,
        duration_s: float,
    ) -> "ChunkResult":
        return cls(
            sequence=sequence,
            rows=rows,
            ok=False,
            attempts=attempts,
            duration_s=duration_s,
            stage=stage,
            reason=reason,
        )
