"""Data update status and control routes."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from pogo_core.data.models import UpdateStatus, UpdateTask
from pogo_core.exceptions import SourceNotFoundError
from pogo_core.updates import UpdateEvent, UpdateListener

if TYPE_CHECKING:
    from pogo_core.updates import DataUpdateManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_updates(request: Request) -> DataUpdateManager:
    """Get the update manager from app state."""
    manager: DataUpdateManager = request.app.state.updates
    return manager


class SourceStatus(BaseModel):
    """State of one data source."""

    id: str
    name: str
    kind: str
    priority: int
    is_active: bool
    scheduled: bool
    check_interval: float
    last_checked_at: datetime | None = None
    last_updated_at: datetime | None = None
    version_marker: str | None = None
    completed: int = 0
    failed: int = 0


class UpdatesStatusResponse(BaseModel):
    """Sources plus queue and loop state."""

    sources: list[SourceStatus]
    queue_depth: int
    pending: list[str]
    draining: bool
    scheduler_running: bool


class UpdateRecordResponse(BaseModel):
    """One audit record."""

    id: str
    source_id: str
    update_type: str
    status: UpdateStatus
    records_added: int
    records_modified: int
    processing_duration: float | None = None
    version_marker: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class QueuedTask(BaseModel):
    """Task created by a forced update."""

    id: str
    source_id: str
    priority: int
    status: UpdateStatus
    error_message: str | None = None


class ForceUpdateResponse(BaseModel):
    """Result of a forced update."""

    queued: int
    tasks: list[QueuedTask]


class SetActiveRequest(BaseModel):
    """Body for toggling a source."""

    active: bool


def task_event(event: UpdateEvent, task: UpdateTask) -> str:
    """Format a task lifecycle event as one SSE message."""
    data = {
        "event": event.value,
        "task_id": task.id,
        "source_id": task.source_id,
        "status": task.status.value,
        "priority": task.priority,
        "records_added": task.records_added,
        "records_modified": task.records_modified,
        "records_skipped": task.records_skipped,
        "version_marker": task.version_marker,
        "error_message": task.error_message,
    }
    return f"data: {json.dumps(data)}\n\n"


@router.get("/status")
async def get_status(request: Request) -> UpdatesStatusResponse:
    """Get every source's state and the queue depth."""
    status = await _get_updates(request).status()
    return UpdatesStatusResponse(
        sources=[SourceStatus(**source) for source in status["sources"]],
        queue_depth=status["queue_depth"],
        pending=status["pending"],
        draining=status["draining"],
        scheduler_running=status["scheduler_running"],
    )


@router.get("/history")
async def get_history(
    request: Request,
    source_id: str | None = Query(default=None),
    status: UpdateStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
) -> list[UpdateRecordResponse]:
    """Get update history, newest first."""
    try:
        records = await _get_updates(request).history(
            source_id=source_id, status=status, limit=limit
        )
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from None
    return [
        UpdateRecordResponse(
            id=record.id,
            source_id=record.source_id,
            update_type=record.update_type,
            status=record.status,
            records_added=record.records_added,
            records_modified=record.records_modified,
            processing_duration=record.processing_duration,
            version_marker=record.version_marker,
            error_message=record.error_message,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )
        for record in records
    ]


@router.post("/force")
async def force_update(request: Request, wait: bool = False) -> ForceUpdateResponse:
    """Enqueue every active source regardless of version markers.

    Args:
        wait: If True, respond after the queue has been drained
    """
    tasks = await _get_updates(request).force_update(wait=wait)
    return ForceUpdateResponse(
        queued=len(tasks),
        tasks=[
            QueuedTask(
                id=task.id,
                source_id=task.source_id,
                priority=task.priority,
                status=task.status,
                error_message=task.error_message,
            )
            for task in tasks
        ],
    )


@router.post("/sources/{source_id}/active")
async def set_source_active(
    request: Request, source_id: str, body: SetActiveRequest
) -> dict[str, bool | str]:
    """Activate or deactivate a source."""
    try:
        source = await _get_updates(request).set_source_active(source_id, body.active)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from None
    return {"id": source.id, "is_active": source.is_active}


@router.get("/stream")
async def stream_updates(request: Request) -> StreamingResponse:
    """Stream update lifecycle events via SSE."""
    manager = _get_updates(request)
    messages: asyncio.Queue[str] = asyncio.Queue()

    def listener_for(event: UpdateEvent) -> UpdateListener:
        def listener(task: UpdateTask) -> None:
            messages.put_nowait(task_event(event, task))

        return listener

    unsubscribers = [manager.events.subscribe(event, listener_for(event)) for event in UpdateEvent]

    async def event_generator() -> AsyncIterator[str]:
        try:
            while not await request.is_disconnected():
                try:
                    yield await asyncio.wait_for(messages.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
