"""Local game database implementing the store contract used by the update pipeline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

import aiosqlite

from ...exceptions import PersistenceError
from .base import BaseDatabase
from .schema import SCHEMA_SQL, SCHEMA_VERSION, SEED_STATEMENTS

logger = logging.getLogger(__name__)

# (sql, params) pair applied inside GameDatabase.transaction()
Statement = tuple[str, Sequence[Any]]


class GameDatabase(BaseDatabase):
    """SQLite store for game data, data sources and the update audit trail.

    Reads may run concurrently. Writes go through run() or transaction(), which
    share one lock so a batch is never interleaved with another commit on the
    shared connection.
    """

    def __init__(self, db_path: Path, max_connections: int = 5):
        super().__init__(db_path, max_connections=max_connections)
        self._write_lock = asyncio.Lock()

    async def _create_schema(self) -> None:
        """Create tables, run migrations and seed reference dimensions."""
        await self.conn.executescript(SCHEMA_SQL)

        async with self.conn.execute("SELECT version FROM schema_version LIMIT 1") as cursor:
            row = await cursor.fetchone()
            current_version = row["version"] if row else 0

        if row is None:
            await self.conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
        elif current_version < SCHEMA_VERSION:
            await self.conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))

        for sql, rows in SEED_STATEMENTS:
            await self.conn.executemany(sql, rows)

        await self.conn.commit()

    # -------------------------------------------------------------------------
    # Store contract
    # -------------------------------------------------------------------------

    async def get(self, query: str, params: Sequence[Any] = ()) -> aiosqlite.Row | None:
        """Return the first row of a query, or None."""
        async with self._execute(query, params) as cursor:
            return await cursor.fetchone()

    async def all(self, query: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        """Return every row of a query."""
        async with self._execute(query, params) as cursor:
            return list(await cursor.fetchall())

    async def run(self, statement: str, params: Sequence[Any] = ()) -> int:
        """Execute and commit one write statement.

        Returns:
            Number of rows changed.
        """
        async with self._write_lock:
            try:
                async with self._execute(statement, params) as cursor:
                    changes = max(cursor.rowcount, 0)
                await self._commit()
            except PersistenceError:
                await self._rollback()
                raise
        return changes

    async def transaction(self, statements: Sequence[Statement]) -> int:
        """Apply statements atomically; nothing is committed if any of them fails.

        Returns:
            Total number of rows changed.
        """
        total = 0
        async with self._write_lock:
            try:
                for sql, params in statements:
                    async with self._execute(sql, params) as cursor:
                        total += max(cursor.rowcount, 0)
                await self._commit()
            except BaseException:
                await self._rollback()
                raise
        return total

    async def _commit(self) -> None:
        try:
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Commit failed: {e}") from e

    async def _rollback(self) -> None:
        try:
            await self.conn.rollback()
        except aiosqlite.Error:
            logger.exception("Rollback failed on %s", self.db_path)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def ensure_date(self, day: date) -> str:
        """Make sure the dim_date bucket for a day exists and return its id."""
        date_id = day.isoformat()
        await self.run(
            """
            INSERT OR IGNORE INTO dim_date
                (pk_date_id, full_date, year, month, day, quarter, is_weekend)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                date_id,
                date_id,
                day.year,
                day.month,
                day.day,
                (day.month - 1) // 3 + 1,
                int(day.weekday() >= 5),
            ),
        )
        return date_id

    async def count_core_rows(self) -> int:
        """Count Pokemon rows; zero means the store has never been loaded."""
        row = await self.get("SELECT COUNT(*) AS count FROM fact_pokemon")
        return row["count"] if row else 0

    async def get_stats(self) -> dict[str, Any]:
        """Get row counts and the time of the last completed update."""
        stats: dict[str, Any] = {}
        queries = {
            "total_pokemon": "SELECT COUNT(*) AS count FROM fact_pokemon WHERE is_active = 1",
            "total_moves": "SELECT COUNT(*) AS count FROM dim_moves",
            "total_rankings": (
                "SELECT COUNT(*) AS count FROM fact_pokemon_pvp_rankings WHERE is_current = 1"
            ),
            "total_tiers": (
                "SELECT COUNT(*) AS count FROM fact_pokemon_pve_tiers WHERE is_current = 1"
            ),
        }
        for key, query in queries.items():
            row = await self.get(query)
            stats[key] = row["count"] if row else 0

        row = await self.get(
            "SELECT MAX(completed_at) AS last_update FROM fact_data_updates "
            "WHERE update_status = 'completed'"
        )
        stats["last_update"] = row["last_update"] if row else None
        return stats
