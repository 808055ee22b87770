"""Wiring and lifecycle of the data update subsystem."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..config import Settings, get_settings
from ..data.models import AuditRecord, SourceDescriptor, UpdateStatus, UpdateTask
from ..utils import Clock, utcnow
from .audit import AuditLog
from .detector import ChangeDetector
from .events import EventBus
from .feeds import FeedClient, GitHubFeedClient
from .processor import UpdateProcessor
from .queue import UpdateQueue
from .registry import SourceRegistry
from .routines import default_routines
from .scheduler import Scheduler, Sleep

if TYPE_CHECKING:
    from ..data.database import GameDatabase

logger = logging.getLogger(__name__)


class DataUpdateManager:
    """Owns the registry, queue, processor and scheduler for one store.

    Usage:
        manager = DataUpdateManager(db)
        await manager.initialize()   # persist sources, bootstrap, start checks
        ...
        await manager.shutdown()
    """

    def __init__(
        self,
        db: GameDatabase,
        settings: Settings | None = None,
        feed: FeedClient | None = None,
        registry: SourceRegistry | None = None,
        sleep: Sleep | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._db = db
        self._feed = feed or GitHubFeedClient(self._settings)
        self._owns_feed = feed is None
        self.registry = registry or SourceRegistry.from_settings(self._settings)
        self.events = EventBus()
        self.audit = AuditLog(db)
        self.queue = UpdateQueue(clock=clock)
        self.processor = UpdateProcessor(
            self.queue,
            default_routines(db, self._feed, clock=clock),
            self.audit,
            self.registry,
            db,
            self._feed,
            events=self.events,
            clock=clock,
        )
        self.detector = ChangeDetector(self._feed, self.audit, self.registry, db, clock=clock)
        self.scheduler = Scheduler(
            self.registry,
            self.detector,
            self.queue,
            self.processor,
            grace_seconds=self._settings.startup_grace_seconds,
            sleep=sleep,
        )
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self, start_scheduler: bool = True) -> None:
        """Load source state, bootstrap an empty store and start the checks.

        Bootstrapping drains synchronously, so a fresh install has data before
        this returns.
        """
        await self.registry.persist(self._db)
        await self.registry.load_state(self._db)

        if self._settings.bootstrap_on_empty and await self._db.count_core_rows() == 0:
            logger.info("Store is empty; loading all active sources")
            await self.force_update(wait=True)

        if start_scheduler:
            self.scheduler.start()
        self._initialized = True

    async def force_update(self, wait: bool = False) -> list[UpdateTask]:
        """Enqueue every active source, skipping change detection.

        With ``wait`` the call returns after the queue has been drained.
        """
        tasks = [self.queue.enqueue(source) for source in self.registry.active()]
        logger.info("Forced update of %d source(s)", len(tasks))
        if wait:
            await self.processor.drain()
            await self.processor.join()
        else:
            self.processor.request_drain()
        return tasks

    async def check_source(self, source_id: str) -> bool:
        """Run one change check for a source now."""
        return await self.scheduler.check_now(self.registry.get(source_id))

    async def set_source_active(self, source_id: str, active: bool) -> SourceDescriptor:
        """Toggle a source and start or stop its check loop."""
        source = self.registry.set_active(source_id, active)
        await self.registry.save_active(self._db, source)
        if self._initialized:
            if active:
                self.scheduler.start_source(source)
            else:
                await self.scheduler.stop_source(source_id)
        logger.info("Source %s %s", source.name, "activated" if active else "deactivated")
        return source

    async def status(self) -> dict[str, Any]:
        """Snapshot of sources, queue and loop state."""
        summary = await self.audit.summary()
        scheduled = set(self.scheduler.scheduled_sources())
        sources = []
        for source in self.registry:
            counts = summary.get(source.id, {})
            sources.append(
                {
                    "id": source.id,
                    "name": source.name,
                    "kind": source.kind.value,
                    "priority": source.priority,
                    "is_active": source.is_active,
                    "scheduled": source.id in scheduled,
                    "check_interval": source.check_interval,
                    "last_checked_at": source.last_checked_at,
                    "last_updated_at": source.last_updated_at,
                    "version_marker": source.last_known_version_marker,
                    "completed": counts.get("completed", 0),
                    "failed": counts.get("failed", 0),
                }
            )
        return {
            "sources": sources,
            "queue_depth": len(self.queue),
            "pending": [task.source_id for task in self.queue.pending()],
            "draining": self.processor.is_draining,
            "scheduler_running": self.scheduler.is_running,
        }

    async def history(
        self,
        source_id: str | None = None,
        status: UpdateStatus | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        if source_id is not None:
            self.registry.get(source_id)
        return await self.audit.history(source_id=source_id, status=status, limit=limit)

    async def shutdown(self) -> None:
        """Stop the check loops and wait for an in-flight drain to finish."""
        await self.scheduler.stop()
        await self.processor.join()
        if self._owns_feed and isinstance(self._feed, GitHubFeedClient):
            await self._feed.close()
        self._initialized = False
        logger.info("Data update manager stopped")
