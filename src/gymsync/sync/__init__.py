"""Optimistic sync layer.

This package keeps an in-memory collection consistent with its storage
backend: :class:`EntityStore` is the handle callers use,
:class:`SyncQueue` serializes writes per collection,
:class:`RollbackManager` undoes failed optimistic updates and
:class:`ErrorReporter` surfaces failures for a limited time.
"""

from gymsync.sync.errors import AppError, ErrorReporter, Scheduler, TimerHandle
from gymsync.sync.queue import SyncQueue, SyncState
from gymsync.sync.rollback import RollbackManager
from gymsync.sync.store import EntityStore

__all__ = [
    "AppError",
    "EntityStore",
    "ErrorReporter",
    "RollbackManager",
    "Scheduler",
    "SyncQueue",
    "SyncState",
    "TimerHandle",
]
