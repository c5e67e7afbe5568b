"""Domain model for synthetic signal readings.

A ``Chunk`` is the unit that flows through the pipeline:
Emitter -> ChunkQueue -> BulkWriter (one COPY transaction per chunk).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Tuple

from pydantic import BaseModel


class PosePayload(BaseModel):
    """Fixed-shape numeric blob stored in the content column."""

    x: float = 1.23456789
    y: float = 1.23456789
    dx: float = 0.12345678
    dy: float = 0.12345678
    dtheta: float = -0.12345678

    def to_content(self) -> str:
        return self.model_dump_json()


@dataclass(frozen=True)
class Reading:
    """One sample of one signal."""

    signal_id: int
    timestamp: datetime
    content: str

    def as_copy_row(self) -> Tuple[int, datetime, str]:
        """Row for ``COPY points (signal_id, timestamp, content)``.

        The column is ``timestamp`` without time zone, so the instant is
        written as naive UTC.
        """
        ts = self.timestamp
        if ts.tzinfo is not None:
            ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
        return (self.signal_id, ts, self.content)


@dataclass(frozen=True)
class Chunk:
    """Exactly one reading per signal, all stamped with the same instant."""

    sequence: int
    captured_at: datetime
    readings: Tuple[Reading, ...]

    @classmethod
    def build(
        cls,
        sequence: int,
        captured_at: datetime,
        signal_count: int,
        content: str,
    ) -> "Chunk":
        if signal_count < 1:
            raise ValueError("signal_count must be >= 1")
        readings = tuple(
            Reading(signal_id=signal_id, timestamp=captured_at, content=content)
            for signal_id in range(signal_count)
        )
        return cls(sequence=sequence, captured_at=captured_at, readings=readings)

    def __len__(self) -> int:
        return len(self.readings)

    def __iter__(self) -> Iterator[Reading]:
        return iter(self.readings)

    def copy_rows(self) -> Iterator[Tuple[int, datetime, str]]:
        for reading in self.readings:
            yield reading.as_copy_row()
