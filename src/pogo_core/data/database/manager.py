"""Database connection management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from ...config import Settings, get_settings
from .store import GameDatabase

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages the game database lifecycle for the API server and CLI."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._db: GameDatabase | None = None

    @property
    def db(self) -> GameDatabase:
        """Get the game database instance."""
        if self._db is None:
            raise RuntimeError("DatabaseManager not started. Call start() first.")
        return self._db

    async def start(self) -> None:
        """Open the database, creating it with reference data if missing."""
        db = GameDatabase(
            self._settings.db_path,
            max_connections=self._settings.db_max_connections,
        )
        await db.connect()
        self._db = db

        stats = await db.get_stats()
        logger.info(
            "Game database: %d pokemon, %d moves, %d rankings, %d tiers",
            stats["total_pokemon"],
            stats["total_moves"],
            stats["total_rankings"],
            stats["total_tiers"],
        )

    async def stop(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None


@asynccontextmanager
async def create_database(settings: Settings | None = None) -> AsyncIterator[GameDatabase]:
    """Create a database instance as a context manager."""
    manager = DatabaseManager(settings)
    await manager.start()
    try:
        yield manager.db
    finally:
        await manager.stop()
