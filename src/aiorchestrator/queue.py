# src/aiorchestrator/queue.py
"""
Priority task queue for the orchestrator.

Pending tasks are kept in four FIFO buckets, one per priority tier, and
are served strictly in ``critical > high > medium > low`` order. A
low-priority task can therefore wait indefinitely while higher tiers keep
receiving work. Callers that need fairness can opt into ``AgingPolicy``,
which promotes a waiting task by one tier per elapsed interval when bucket
heads are compared.

Usage:
    queue = TaskQueue()
    queue.enqueue(task)
    next_task = queue.dequeue_next()   # None when empty

    # Worker side: suspend until a task arrives or the queue is closed
    task = await queue.get()
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, Optional

from .exceptions import QueueFullError
from .models import Task, TaskPriority

logger = logging.getLogger(__name__)


class AgingPolicy:
    """
    Priority boost for tasks that have waited a long time.

    A task that has waited ``n * boost_after_seconds`` competes as if it
    were ``n`` tiers higher, never above ``critical``.
    """

    def __init__(self, boost_after_seconds: float):
        if boost_after_seconds <= 0:
            raise ValueError("boost_after_seconds must be positive")
        self.boost_after_seconds = boost_after_seconds

    def effective_rank(self, task: Task, now: datetime) -> int:
        waited = (now - task.submitted_at).total_seconds()
        boost = int(max(waited, 0.0) // self.boost_after_seconds)
        return max(0, task.priority.rank - boost)


class TaskQueue:
    """
    In-memory four-tier priority queue with FIFO order inside each tier.

    Args:
        max_size: Maximum number of pending tasks; 0 keeps the queue unbounded.
        aging: Optional aging policy; None means strict priority.
        clock: Returns the current UTC time (used by the aging policy).
    """

    def __init__(
        self,
        max_size: int = 0,
        aging: Optional[AgingPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_size = max_size
        self.aging = aging
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._buckets: Dict[TaskPriority, Deque[Task]] = {p: deque() for p in TaskPriority}
        self._not_empty = asyncio.Event()
        self._closed = False

    def enqueue(self, task: Task) -> None:
        """
        Append a task to the bucket matching its priority.

        Raises:
            QueueFullError: If a capacity is configured and already reached.
        """
        if self.max_size and self.size() >= self.max_size:
            raise QueueFullError(self.max_size)
        self._buckets[task.priority].append(task)
        self._not_empty.set()

    def dequeue_next(self) -> Optional[Task]:
        """Remove and return the next task to dispatch, or None when empty."""
        if self.aging is None:
            for priority in TaskPriority:
                bucket = self._buckets[priority]
                if bucket:
                    return bucket.popleft()
            return None

        now = self._clock()
        best: Optional[TaskPriority] = None
        best_key: Optional[tuple[int, int]] = None
        for priority in TaskPriority:
            bucket = self._buckets[priority]
            if not bucket:
                continue
            key = (self.aging.effective_rank(bucket[0], now), priority.rank)
            if best_key is None or key < best_key:
                best, best_key = priority, key
        if best is None:
            return None
        if best_key[0] < best.rank:
            logger.debug(f"Aging promoted task {self._buckets[best][0].id} from '{best.value}'")
        return self._buckets[best].popleft()

    async def get(self) -> Optional[Task]:
        """
        Wait for the next task.

        Returns None once the queue has been closed; tasks still pending at
        that point are left in place.
        """
        while True:
            if self._closed:
                return None
            task = self.dequeue_next()
            if task is not None:
                return task
            self._not_empty.clear()
            await self._not_empty.wait()

    def close(self) -> None:
        """
        Wake every waiter and make subsequent `get()` calls return None.

        Closing only stops consumers. `enqueue` keeps accepting tasks, which
        wait for `reopen()`.
        """
        self._closed = True
        self._not_empty.set()

    def reopen(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def size(self) -> int:
        """Total number of pending tasks across all tiers."""
        return sum(len(bucket) for bucket in self._buckets.values())

    def size_by_priority(self) -> Dict[str, int]:
        return {p.value: len(bucket) for p, bucket in self._buckets.items()}

    def clear(self) -> int:
        """Drop every pending task and return how many were removed."""
        count = self.size()
        for bucket in self._buckets.values():
            bucket.clear()
        return count

    def __len__(self) -> int:
        return self.size()

    def get_stats(self) -> Dict[str, object]:
        return {
            "depth": self.size(),
            "by_priority": self.size_by_priority(),
            "max_size": self.max_size,
            "aging_enabled": self.aging is not None,
            "closed": self._closed,
        }
