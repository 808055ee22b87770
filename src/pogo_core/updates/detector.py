"""Change detection by comparing remote and last-loaded version markers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import FetchError, PersistenceError
from ..utils import Clock, utcnow

if TYPE_CHECKING:
    from ..data.database import GameDatabase
    from ..data.models import SourceDescriptor
    from .audit import AuditLog
    from .feeds import FeedClient
    from .registry import SourceRegistry

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Decides whether a source has new data worth loading."""

    def __init__(
        self,
        feed: FeedClient,
        audit: AuditLog,
        registry: SourceRegistry,
        db: GameDatabase,
        clock: Clock = utcnow,
    ) -> None:
        self._feed = feed
        self._audit = audit
        self._registry = registry
        self._db = db
        self._clock = clock

    async def detect(self, source: SourceDescriptor) -> bool:
        """Return True if the remote marker differs from the last completed update's.

        Failures to reach the feed or to read the audit trail count as "no
        change": they are logged, nothing is modified, and the next scheduled
        check tries again.
        """
        try:
            current = await self._feed.resolve_version_marker(source)
        except FetchError as e:
            logger.warning("Could not resolve version for %s: %s", source.name, e)
            return False

        try:
            last = await self._audit.last_completed_marker(source.id)
        except PersistenceError as e:
            logger.warning("Could not read update history for %s: %s", source.name, e)
            return False

        source.last_checked_at = self._clock()
        try:
            await self._registry.save_check(self._db, source)
        except PersistenceError as e:
            logger.warning("Could not record check time for %s: %s", source.name, e)

        if current != last:
            logger.info("Version changed for %s: %s -> %s", source.name, last, current)
            return True

        logger.info("No updates for %s (%s)", source.name, current)
        return False
