"""Data models for sources, update tasks, and audit records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SourceKind(str, Enum):
    """Kinds of external feeds."""

    GAMEMASTER = "gamemaster"
    RANKINGS = "rankings"
    TIERS = "tiers"
    MOVES = "moves"


class UpdateStatus(str, Enum):
    """Lifecycle states of an update task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Queue weight per source kind; anything unlisted gets DEFAULT_PRIORITY
PRIORITY_BY_KIND: dict[str, int] = {
    SourceKind.GAMEMASTER.value: 10,
    SourceKind.RANKINGS.value: 8,
    SourceKind.TIERS.value: 6,
    SourceKind.MOVES.value: 4,
}
DEFAULT_PRIORITY = 1


def priority_for_kind(kind: SourceKind | str) -> int:
    """Get the queue priority for a source kind."""
    value = kind.value if isinstance(kind, SourceKind) else kind
    return PRIORITY_BY_KIND.get(value, DEFAULT_PRIORITY)


@dataclass
class SourceDescriptor:
    """One external feed and its last known state."""

    id: str
    name: str
    kind: SourceKind
    repository: str  # owner/repo
    path: str  # file or directory inside the repository
    check_interval: float  # seconds
    branch: str = "master"
    is_active: bool = True
    last_checked_at: datetime | None = None
    last_updated_at: datetime | None = None
    last_known_version_marker: str | None = None

    @property
    def priority(self) -> int:
        return priority_for_kind(self.kind)

    @property
    def repository_url(self) -> str:
        return f"https://github.com/{self.repository}.git"


@dataclass
class UpdateResult:
    """Counts produced by one update routine."""

    records_added: int = 0
    records_modified: int = 0
    records_skipped: int = 0


def _new_task_id() -> str:
    return f"upd_{uuid.uuid4().hex[:16]}"


@dataclass
class UpdateTask:
    """One scheduled or manually triggered refresh of a source."""

    source: SourceDescriptor
    priority: int
    enqueued_at: datetime
    id: str = field(default_factory=_new_task_id)
    status: UpdateStatus = UpdateStatus.PENDING
    started_at: datetime | None = None
    ended_at: datetime | None = None
    records_added: int = 0
    records_modified: int = 0
    records_skipped: int = 0
    error_message: str | None = None
    version_marker: str | None = None

    @property
    def source_id(self) -> str:
        return self.source.id

    @property
    def duration(self) -> float:
        """Processing time in seconds (0 until the task has both timestamps)."""
        if self.started_at is None or self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    def mark_in_progress(self, at: datetime) -> None:
        if self.status is not UpdateStatus.PENDING:
            raise ValueError(f"Task {self.id} is {self.status.value}, expected pending")
        self.status = UpdateStatus.IN_PROGRESS
        self.started_at = at

    def complete(self, result: UpdateResult, version_marker: str | None, at: datetime) -> None:
        self.status = UpdateStatus.COMPLETED
        self.records_added = result.records_added
        self.records_modified = result.records_modified
        self.records_skipped = result.records_skipped
        self.version_marker = version_marker
        self.ended_at = at

    def fail(self, error_message: str, at: datetime) -> None:
        self.status = UpdateStatus.FAILED
        self.error_message = error_message
        self.ended_at = at


@dataclass
class AuditRecord:
    """Stored outcome of one update task (row of fact_data_updates)."""

    id: str
    source_id: str
    date_id: str
    update_type: str
    status: UpdateStatus
    records_added: int
    records_modified: int
    processing_duration: float | None
    version_marker: str | None
    error_message: str | None
    created_at: datetime
    completed_at: datetime | None
