"""Durable history of update task outcomes (fact_data_updates)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..data.models import AuditRecord, UpdateStatus, UpdateTask
from ..exceptions import PersistenceError
from ..utils import from_db, to_db, utcnow

if TYPE_CHECKING:
    import aiosqlite

    from ..data.database import GameDatabase

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = """
    pk_update_id, fk_source_id, fk_date_id, update_type, update_status,
    records_added, records_modified, processing_duration, git_commit_hash,
    error_message, created_at, completed_at
"""


def _row_to_record(row: aiosqlite.Row) -> AuditRecord:
    created_at = from_db(row["created_at"])
    if created_at is None:
        raise PersistenceError(f"Update {row['pk_update_id']} has no created_at")
    return AuditRecord(
        id=row["pk_update_id"],
        source_id=row["fk_source_id"],
        date_id=row["fk_date_id"],
        update_type=row["update_type"],
        status=UpdateStatus(row["update_status"]),
        records_added=row["records_added"] or 0,
        records_modified=row["records_modified"] or 0,
        processing_duration=row["processing_duration"],
        version_marker=row["git_commit_hash"],
        error_message=row["error_message"],
        created_at=created_at,
        completed_at=from_db(row["completed_at"]),
    )


class AuditLog:
    """Append-at-start, update-at-terminal record of every update task.

    The row for a task is inserted as ``in_progress`` when processing begins and
    updated in place to ``completed`` or ``failed``. Rows are never deleted; the
    change detector reads the newest completed row for a source to learn which
    version marker is already loaded.
    """

    def __init__(self, db: GameDatabase) -> None:
        self._db = db

    async def record_start(self, task: UpdateTask) -> None:
        started = task.started_at or utcnow()
        date_id = await self._db.ensure_date(started.date())
        await self._db.run(
            """
            INSERT INTO fact_data_updates (
                pk_update_id, fk_source_id, fk_date_id, update_type,
                update_status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.source_id,
                date_id,
                task.source.kind.value,
                UpdateStatus.IN_PROGRESS.value,
                to_db(started),
            ),
        )

    async def record_completion(self, task: UpdateTask) -> None:
        changed = await self._db.run(
            """
            UPDATE fact_data_updates
            SET update_status = ?,
                records_added = ?,
                records_modified = ?,
                records_skipped = ?,
                processing_duration = ?,
                git_commit_hash = ?,
                completed_at = ?
            WHERE pk_update_id = ?
            """,
            (
                UpdateStatus.COMPLETED.value,
                task.records_added,
                task.records_modified,
                task.records_skipped,
                task.duration,
                task.version_marker,
                to_db(task.ended_at),
                task.id,
            ),
        )
        if changed == 0:
            started = task.started_at or utcnow()
            date_id = await self._db.ensure_date(started.date())
            await self._db.run(
                """
                INSERT INTO fact_data_updates (
                    pk_update_id, fk_source_id, fk_date_id, update_type, update_status,
                    records_added, records_modified, records_skipped, processing_duration,
                    git_commit_hash, created_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.source_id,
                    date_id,
                    task.source.kind.value,
                    UpdateStatus.COMPLETED.value,
                    task.records_added,
                    task.records_modified,
                    task.records_skipped,
                    task.duration,
                    task.version_marker,
                    to_db(started),
                    to_db(task.ended_at),
                ),
            )

    async def record_failure(self, task: UpdateTask) -> None:
        changed = await self._db.run(
            """
            UPDATE fact_data_updates
            SET update_status = ?,
                error_message = ?,
                processing_duration = ?,
                completed_at = ?
            WHERE pk_update_id = ?
            """,
            (
                UpdateStatus.FAILED.value,
                task.error_message,
                task.duration,
                to_db(task.ended_at),
                task.id,
            ),
        )
        if changed == 0:
            # No start row to update
            started = task.started_at or utcnow()
            date_id = await self._db.ensure_date(started.date())
            await self._db.run(
                """
                INSERT INTO fact_data_updates (
                    pk_update_id, fk_source_id, fk_date_id, update_type, update_status,
                    error_message, processing_duration, created_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.source_id,
                    date_id,
                    task.source.kind.value,
                    UpdateStatus.FAILED.value,
                    task.error_message,
                    task.duration,
                    to_db(started),
                    to_db(task.ended_at),
                ),
            )

    async def last_completed_marker(self, source_id: str) -> str | None:
        """Version marker of the newest completed update for a source."""
        row = await self._db.get(
            """
            SELECT git_commit_hash
            FROM fact_data_updates
            WHERE fk_source_id = ? AND update_status = 'completed'
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """,
            (source_id,),
        )
        return row["git_commit_hash"] if row else None

    async def get(self, update_id: str) -> AuditRecord | None:
        row = await self._db.get(
            f"SELECT {_SELECT_COLUMNS} FROM fact_data_updates WHERE pk_update_id = ?",
            (update_id,),
        )
        return _row_to_record(row) if row else None

    async def latest(self, source_id: str) -> AuditRecord | None:
        """Newest record for a source regardless of status."""
        row = await self._db.get(
            f"""
            SELECT {_SELECT_COLUMNS} FROM fact_data_updates
            WHERE fk_source_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """,
            (source_id,),
        )
        return _row_to_record(row) if row else None

    async def history(
        self,
        source_id: str | None = None,
        status: UpdateStatus | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        """Newest-first update history, optionally filtered."""
        conditions: list[str] = []
        params: list[Any] = []
        if source_id:
            conditions.append("fk_source_id = ?")
            params.append(source_id)
        if status:
            conditions.append("update_status = ?")
            params.append(status.value)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(limit)
        rows = await self._db.all(
            f"""
            SELECT {_SELECT_COLUMNS} FROM fact_data_updates
            {where}
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            params,
        )
        return [_row_to_record(row) for row in rows]

    async def summary(self) -> dict[str, dict[str, Any]]:
        """Per-source completed/failed counts and last completion time."""
        rows = await self._db.all(
            """
            SELECT fk_source_id,
                   SUM(update_status = 'completed') AS completed,
                   SUM(update_status = 'failed') AS failed,
                   MAX(CASE WHEN update_status = 'completed' THEN completed_at END)
                       AS last_completed_at
            FROM fact_data_updates
            GROUP BY fk_source_id
            """
        )
        return {
            row["fk_source_id"]: {
                "completed": row["completed"] or 0,
                "failed": row["failed"] or 0,
                "last_completed_at": from_db(row["last_completed_at"]),
            }
            for row in rows
        }
