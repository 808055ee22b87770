"""Typed notifications for update task lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from ..data.models import UpdateTask

logger = logging.getLogger(__name__)

UpdateListener = Callable[[UpdateTask], None]


class UpdateEvent(str, Enum):
    """Lifecycle events emitted by the processor."""

    UPDATE_START = "update_start"
    UPDATE_COMPLETE = "update_complete"
    UPDATE_ERROR = "update_error"


class EventBus:
    """Per-event listener lists with explicit subscribe/unsubscribe.

    Listeners are called synchronously in registration order. A listener that
    raises is logged and skipped; the remaining listeners still run.
    """

    def __init__(self) -> None:
        self._listeners: dict[UpdateEvent, list[UpdateListener]] = {
            event: [] for event in UpdateEvent
        }

    def subscribe(self, event: UpdateEvent, listener: UpdateListener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(event, listener)

        return unsubscribe

    def unsubscribe(self, event: UpdateEvent, listener: UpdateListener) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            return False
        return True

    def listener_count(self, event: UpdateEvent) -> int:
        return len(self._listeners[event])

    def clear(self) -> None:
        for listeners in self._listeners.values():
            listeners.clear()

    def emit(self, event: UpdateEvent, task: UpdateTask) -> None:
        """Notify every listener of an event."""
        # Copy so listeners may unsubscribe themselves while being notified
        for listener in list(self._listeners[event]):
            try:
                listener(task)
            except Exception:
                logger.exception(
                    "Listener %r failed for %s on task %s", listener, event.value, task.id
                )
