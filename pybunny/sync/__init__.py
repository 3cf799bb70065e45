"""Sync engine for PyBunny - one-way mirroring of a local tree to a storage zone."""

from .comparator import FileComparator, SyncAction, SyncDecision, diff
from .engine import SyncEngine
from .job import SyncJob
from .lock import RemoteLock
from .models import (
    ChangePlan,
    FailedItem,
    FileRecord,
    Inventory,
    Outcome,
    SyncReport,
    WorkItem,
    WorkKind,
)
from .operations import SyncOperations
from .scanner import DirectoryScanner, RemoteScanner
from .scheduler import WorkScheduler

__all__ = [
    "SyncEngine",
    "SyncJob",
    "SyncOperations",
    "WorkScheduler",
    "RemoteLock",
    "DirectoryScanner",
    "RemoteScanner",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "diff",
    "ChangePlan",
    "FailedItem",
    "FileRecord",
    "Inventory",
    "Outcome",
    "SyncReport",
    "WorkItem",
    "WorkKind",
]
