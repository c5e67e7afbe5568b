"""Retry policy with exponential backoff for failed chunk writes."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Tuple, Type

import psycopg
from sqlalchemy import exc as sa_exc


# Connection-level failures. Integrity errors (duplicate keys) never retry.
CONNECTION_ERRORS: Tuple[Type[BaseException], ...] = (
    sa_exc.OperationalError,
    sa_exc.DisconnectionError,
    sa_exc.InterfaceError,
    psycopg.OperationalError,
    psycopg.InterfaceError,
)


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for a chunk write.

    ``max_attempts=1`` means a failed chunk is counted as lost right away.
    """

    max_attempts: int = 1
    base_delay: float = 0.05  # segundos
    max_delay: float = 2.0  # segundos
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[BaseException], ...] = CONNECTION_ERRORS

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-indexed)."""
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            # ±25%
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    def is_retryable(self, cause: BaseException) -> bool:
        return isinstance(cause, self.retryable_exceptions)
