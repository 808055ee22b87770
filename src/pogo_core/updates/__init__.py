"""Data update orchestration: scheduling, change detection, queueing and processing."""

from .audit import AuditLog
from .detector import ChangeDetector
from .events import EventBus, UpdateEvent, UpdateListener
from .feeds import FeedClient, GitHubFeedClient
from .manager import DataUpdateManager
from .processor import UpdateProcessor
from .queue import DrainInProgressError, UpdateQueue
from .registry import SourceRegistry, default_sources
from .routines import (
    GameMasterRoutine,
    NaturalKeyPolicy,
    RankingsRoutine,
    TiersRoutine,
    UpsertRoutine,
    default_routines,
)
from .scheduler import Scheduler

__all__ = [
    "AuditLog",
    "ChangeDetector",
    "DataUpdateManager",
    "DrainInProgressError",
    "EventBus",
    "FeedClient",
    "GameMasterRoutine",
    "GitHubFeedClient",
    "NaturalKeyPolicy",
    "RankingsRoutine",
    "Scheduler",
    "SourceRegistry",
    "TiersRoutine",
    "UpdateEvent",
    "UpdateListener",
    "UpdateProcessor",
    "UpdateQueue",
    "UpsertRoutine",
    "default_routines",
    "default_sources",
]
