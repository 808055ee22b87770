"""SQLite connection handling shared by the game store."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from ...config import get_settings
from ...exceptions import PersistenceError

logger = logging.getLogger(__name__)


class BaseDatabase(ABC):
    """Base class for SQLite access.

    Owns one aiosqlite connection. Queries go through _execute(), which holds the
    concurrency semaphore and wraps driver errors in PersistenceError. Subclasses
    build their tables in _create_schema().
    """

    def __init__(self, db_path: Path, max_connections: int = 5):
        """Initialize with a database path.

        Args:
            db_path: Path to the SQLite file (":memory:" is not supported since
                the file's parent directory is created on connect).
            max_connections: Maximum concurrent queries (semaphore limit).
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._semaphore = asyncio.Semaphore(max_connections)

    @property
    def conn(self) -> aiosqlite.Connection:
        """The open connection; raises if connect() has not been awaited."""
        if self._conn is None:
            raise RuntimeError(f"{type(self).__name__} not connected. Call connect() first.")
        return self._conn

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """Connect, set pragmas, and initialize schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.execute("PRAGMA journal_mode = WAL")
        await self._conn.execute("PRAGMA busy_timeout = 5000")  # 5 seconds
        await self._create_schema()
        logger.info("%s connected at %s", type(self).__name__, self.db_path)

    async def close(self) -> None:
        """Close the connection if open."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @abstractmethod
    async def _create_schema(self) -> None:
        """Create missing tables and seed reference rows."""

    @asynccontextmanager
    async def _execute(
        self, query: str, params: Sequence[Any] = ()
    ) -> AsyncIterator[aiosqlite.Cursor]:
        """Run one statement under the semaphore and yield its cursor.

        Args:
            query: SQL query string.
            params: Query parameters.

        Yields:
            The cursor of the executed statement.

        Raises:
            PersistenceError: If SQLite rejects the statement.
        """
        settings = get_settings()
        async with self._semaphore:
            start = time.perf_counter()
            try:
                async with self.conn.execute(query, params) as cursor:
                    yield cursor
            except aiosqlite.Error as e:
                raise PersistenceError(f"{e} (query: {query.strip()[:80]})") from e
            finally:
                if settings.log_slow_queries:
                    duration_ms = (time.perf_counter() - start) * 1000
                    if duration_ms > settings.slow_query_threshold_ms:
                        logger.warning("Slow query (%.1fms): %s", duration_ms, query[:100])
