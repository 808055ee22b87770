"""Priority queue of pending update tasks."""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from ..data.models import SourceDescriptor, UpdateStatus, UpdateTask, priority_for_kind
from ..utils import Clock, utcnow

logger = logging.getLogger(__name__)


class DrainInProgressError(RuntimeError):
    """Raised when a second drain loop tries to claim the queue."""


class UpdateQueue:
    """Priority-descending queue with FIFO order among equal priorities.

    enqueue() and pop() never await, so callers on the event loop cannot
    interleave inside them. Exactly one drain loop may hold the queue at a time
    (see draining()); tasks enqueued while it runs are picked up by that loop.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._heap: list[tuple[int, int, UpdateTask]] = []
        self._sequence = itertools.count()
        self._clock = clock
        self._draining = False

    def enqueue(self, source: SourceDescriptor) -> UpdateTask:
        """Create a pending task for a source and insert it by priority."""
        task = UpdateTask(
            source=source,
            priority=priority_for_kind(source.kind),
            enqueued_at=self._clock(),
        )
        heapq.heappush(self._heap, (-task.priority, next(self._sequence), task))
        logger.info("Queued update for %s (priority %d)", source.name, task.priority)
        return task

    def pop(self) -> UpdateTask | None:
        """Remove and return the highest-priority task, or None when empty."""
        if not self._heap:
            return None
        _, _, task = heapq.heappop(self._heap)
        return task

    def pending(self) -> list[UpdateTask]:
        """Snapshot of queued tasks in the order they will be processed."""
        return [task for _, _, task in sorted(self._heap)]

    def clear(self) -> list[UpdateTask]:
        """Drop every pending task and return them."""
        dropped = self.pending()
        self._heap.clear()
        return dropped

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def has_pending(self, source_id: str) -> bool:
        return any(
            task.source_id == source_id and task.status is UpdateStatus.PENDING
            for _, _, task in self._heap
        )

    @property
    def is_draining(self) -> bool:
        return self._draining

    @contextmanager
    def draining(self) -> Iterator[None]:
        """Claim the queue for one drain loop.

        Raises:
            DrainInProgressError: If another loop already holds it.
        """
        if self._draining:
            raise DrainInProgressError("Update queue is already being drained")
        self._draining = True
        try:
            yield
        finally:
            self._draining = False
