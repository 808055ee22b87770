"""Per-source periodic change checks."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..data.models import SourceDescriptor
    from .detector import ChangeDetector
    from .processor import UpdateProcessor
    from .queue import UpdateQueue
    from .registry import SourceRegistry

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Scheduler:
    """Runs one check loop per active source.

    Each loop waits ``grace_seconds`` before its first check and then
    ``check_interval`` seconds between checks. A changed source is enqueued and
    a drain is requested. Errors inside a check are logged and the loop keeps
    its schedule. Loops wake early only when the scheduler is stopped.

    Pass ``sleep`` to drive the loops from a fake clock in tests; by default
    the wait is an interruptible wait on the stop event.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        detector: ChangeDetector,
        queue: UpdateQueue,
        processor: UpdateProcessor,
        grace_seconds: float = 60.0,
        sleep: Sleep | None = None,
    ) -> None:
        self._registry = registry
        self._detector = detector
        self._queue = queue
        self._processor = processor
        self._grace_seconds = grace_seconds
        self._sleep = sleep
        self._stopping = asyncio.Event()
        self._loops: dict[str, asyncio.Task[None]] = {}

    @property
    def is_running(self) -> bool:
        return any(not loop.done() for loop in self._loops.values())

    def scheduled_sources(self) -> list[str]:
        return [source_id for source_id, loop in self._loops.items() if not loop.done()]

    def start(self) -> None:
        """Start a loop for every active source."""
        self._stopping.clear()
        for source in self._registry.active():
            self.start_source(source)
        logger.info("Scheduler started for %d source(s)", len(self._loops))

    def start_source(self, source: SourceDescriptor) -> None:
        existing = self._loops.get(source.id)
        if existing is not None and not existing.done():
            return
        self._loops[source.id] = asyncio.create_task(
            self._run(source), name=f"update-check:{source.id}"
        )
        logger.debug(
            "Scheduled %s every %.0fs after %.0fs grace",
            source.name,
            source.check_interval,
            self._grace_seconds,
        )

    async def stop_source(self, source_id: str) -> None:
        loop = self._loops.pop(source_id, None)
        if loop is None:
            return
        loop.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop

    async def stop(self) -> None:
        """Cancel every loop and wait for them to exit."""
        self._stopping.set()
        loops = list(self._loops.values())
        self._loops.clear()
        for loop in loops:
            loop.cancel()
        await asyncio.gather(*loops, return_exceptions=True)
        logger.info("Scheduler stopped")

    async def check_now(self, source: SourceDescriptor) -> bool:
        """Run one detection for a source, enqueueing it if it changed.

        Returns:
            True if the source was enqueued.
        """
        try:
            if not source.is_active:
                return False
            if not await self._detector.detect(source):
                return False
            self._queue.enqueue(source)
            self._processor.request_drain()
        except Exception:
            logger.exception("Scheduled check failed for %s", source.name)
            return False
        return True

    async def _run(self, source: SourceDescriptor) -> None:
        if await self._wait(self._grace_seconds):
            return
        while True:
            await self.check_now(source)
            if await self._wait(source.check_interval):
                return

    async def _wait(self, seconds: float) -> bool:
        """Sleep for an interval; returns True if the scheduler is stopping."""
        if self._sleep is not None:
            await self._sleep(seconds)
            return self._stopping.is_set()
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
