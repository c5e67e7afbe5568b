"""Bounded blocking hand-off queue between emitter and writer.

Unlike a drop-on-full buffer, ``put`` blocks while the queue is at capacity:
that wait is the pipeline's only backpressure mechanism.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Generic, Optional, TypeVar

from ..errors import QueueClosed

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound for a single condition wait so stop events are noticed.
_WAIT_SLICE_S = 0.1


@dataclass
class QueueStats:
    """Queue statistics."""
    enqueued: int = 0
    dequeued: int = 0
    blocked_puts: int = 0
    high_watermark: int = 0


class ChunkQueue(Generic[T]):
    """FIFO of fixed capacity with blocking put/get.

    Usage:
        queue = ChunkQueue[Chunk](capacity=5000)

        # Producer
        queue.put(chunk, stop_event=stop)

        # Consumer
        chunk = queue.get(timeout=0.5)
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._queue: Deque[T] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._closed = False
        self._stats = QueueStats()

        logger.info("[QUEUE] ChunkQueue initialized: capacity=%d", capacity)

    def put(
        self,
        item: T,
        timeout: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> bool:
        """Append an item, blocking while the queue is full.

        Returns:
            True if enqueued, False on timeout or when ``stop_event`` is set.

        Raises:
            QueueClosed: the queue was closed before or while waiting.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._not_full:
            if self._closed:
                raise QueueClosed("put() on closed queue")

            if len(self._queue) >= self._capacity:
                self._stats.blocked_puts += 1
                logger.debug("[QUEUE] Full (%d), producer waiting", self._capacity)

            while len(self._queue) >= self._capacity:
                if stop_event is not None and stop_event.is_set():
                    return False
                wait_s = _WAIT_SLICE_S
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                    wait_s = min(wait_s, remaining)
                self._not_full.wait(wait_s)
                if self._closed:
                    raise QueueClosed("queue closed while waiting to put")

            self._queue.append(item)
            self._stats.enqueued += 1
            if len(self._queue) > self._stats.high_watermark:
                self._stats.high_watermark = len(self._queue)

            self._not_empty.notify()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Pop the oldest item, blocking while the queue is empty.

        Args:
            timeout: Seconds to wait (None = block until an item or close)

        Returns:
            Item, or None on timeout or when closed and drained
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._not_empty:
            while not self._queue:
                if self._closed:
                    return None
                if deadline is None:
                    self._not_empty.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._not_empty.wait(remaining)

            item = self._queue.popleft()
            self._stats.dequeued += 1
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Terminal: no more puts; consumers drain what is left, then get None."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = len(self._queue)
            self._not_empty.notify_all()
            self._not_full.notify_all()
        logger.info("[QUEUE] Closed with %d chunk(s) pending", pending)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def is_full(self) -> bool:
        with self._lock:
            return len(self._queue) >= self._capacity

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return len(self._queue) == 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "enqueued": self._stats.enqueued,
                "dequeued": self._stats.dequeued,
                "blocked_puts": self._stats.blocked_puts,
                "high_watermark": self._stats.high_watermark,
                "current_size": len(self._queue),
                "capacity": self._capacity,
                "utilization_pct": len(self._queue) / self._capacity * 100,
            }
