"""Timestamp helpers shared by the store and the update pipeline."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db(value: datetime | None) -> str | None:
    """Serialize a datetime for a TIMESTAMP column."""
    return value.isoformat() if value is not None else None


def from_db(value: str | None) -> datetime | None:
    """Parse a TIMESTAMP column written by to_db() or by CURRENT_TIMESTAMP."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # CURRENT_TIMESTAMP is UTC without an offset
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
