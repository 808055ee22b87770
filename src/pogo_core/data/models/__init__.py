"""Data models."""

from .updates import (
    DEFAULT_PRIORITY,
    PRIORITY_BY_KIND,
    AuditRecord,
    SourceDescriptor,
    SourceKind,
    UpdateResult,
    UpdateStatus,
    UpdateTask,
    priority_for_kind,
)

__all__ = [
    "DEFAULT_PRIORITY",
    "PRIORITY_BY_KIND",
    "AuditRecord",
    "SourceDescriptor",
    "SourceKind",
    "UpdateResult",
    "UpdateStatus",
    "UpdateTask",
    "priority_for_kind",
]
