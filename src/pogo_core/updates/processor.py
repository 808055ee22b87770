"""Single drain loop that executes queued update tasks one at a time."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING

from ..data.models import SourceKind, UpdateTask
from ..exceptions import PersistenceError, PogoError
from ..utils import Clock, utcnow
from .events import EventBus, UpdateEvent
from .queue import DrainInProgressError, UpdateQueue

if TYPE_CHECKING:
    from ..data.database import GameDatabase
    from .audit import AuditLog
    from .feeds import FeedClient
    from .registry import SourceRegistry
    from .routines import UpsertRoutine

logger = logging.getLogger(__name__)


class UpdateProcessor:
    """Pops tasks by priority and runs each to a recorded terminal state.

    Only one drain loop runs at a time, so tasks never overlap and the audit
    trail follows execution order. A failed task is recorded and reported; the
    loop moves on to the next task and nothing is re-enqueued.
    """

    def __init__(
        self,
        queue: UpdateQueue,
        routines: Mapping[SourceKind, UpsertRoutine],
        audit: AuditLog,
        registry: SourceRegistry,
        db: GameDatabase,
        feed: FeedClient,
        events: EventBus | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._queue = queue
        self._routines = routines
        self._audit = audit
        self._registry = registry
        self._db = db
        self._feed = feed
        self._events = events or EventBus()
        self._clock = clock
        self._drain_task: asyncio.Task[int] | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_draining(self) -> bool:
        return self._queue.is_draining

    async def drain(self) -> int:
        """Process tasks until the queue is empty.

        Returns:
            Number of tasks processed, or 0 if another loop is already draining
            (that loop will pick up anything queued meanwhile).
        """
        try:
            with self._queue.draining():
                self._idle.clear()
                try:
                    processed = 0
                    while (task := self._queue.pop()) is not None:
                        await self._process(task)
                        processed += 1
                finally:
                    self._idle.set()
        except DrainInProgressError:
            logger.debug("Drain already in progress")
            return 0

        if processed:
            logger.info("Drained %d update task(s)", processed)
        return processed

    def request_drain(self) -> asyncio.Task[int] | None:
        """Start a background drain unless one is already running."""
        if self._queue.is_draining:
            return None
        if self._drain_task is not None and not self._drain_task.done():
            return self._drain_task
        self._drain_task = asyncio.create_task(self.drain(), name="update-drain")
        return self._drain_task

    async def join(self) -> None:
        """Wait until no drain loop is running."""
        if self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})
        await self._idle.wait()

    async def _process(self, task: UpdateTask) -> None:
        source = task.source
        task.mark_in_progress(self._clock())
        await self._record(self._audit.record_start, task)
        self._events.emit(UpdateEvent.UPDATE_START, task)
        logger.info("Updating %s (%s)", source.name, task.id)

        try:
            routine = self._routines.get(source.kind)
            if routine is None:
                raise PogoError(f"No update routine for {source.kind.value} sources")
            marker = await self._feed.resolve_version_marker(source)
            result = await routine.run(source, marker)
        except Exception as e:
            task.fail(str(e) or type(e).__name__, self._clock())
            logger.error("Update failed for %s: %s", source.name, task.error_message)
            await self._record(self._audit.record_failure, task)
            self._events.emit(UpdateEvent.UPDATE_ERROR, task)
            return

        task.complete(result, marker, self._clock())
        try:
            await self._audit.record_completion(task)
        except PersistenceError as e:
            task.fail(f"Could not record completion: {e}", self._clock())
            logger.error("Update failed for %s: %s", source.name, task.error_message)
            await self._record(self._audit.record_failure, task)
            self._events.emit(UpdateEvent.UPDATE_ERROR, task)
            return

        source.last_known_version_marker = marker
        source.last_updated_at = task.ended_at
        try:
            await self._registry.save_update(self._db, source)
        except PersistenceError as e:
            logger.warning("Could not save update state for %s: %s", source.name, e)

        logger.info(
            "Updated %s in %.2fs: %d added, %d modified, %d skipped",
            source.name,
            task.duration,
            task.records_added,
            task.records_modified,
            task.records_skipped,
        )
        self._events.emit(UpdateEvent.UPDATE_COMPLETE, task)

    async def _record(
        self, write: Callable[[UpdateTask], Awaitable[None]], task: UpdateTask
    ) -> None:
        try:
            await write(task)
        except PersistenceError as e:
            logger.error("Could not write audit record for %s: %s", task.id, e)
