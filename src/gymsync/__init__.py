"""gymsync - Optimistic local-first persistence for a workout tracker."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gymsync")
except PackageNotFoundError:
    __version__ = "0+local"
from gymsync.config import LocalBackend, RemoteBackend, TrackerConfig
from gymsync.delta import Delta, compute_delta, deep_equal
from gymsync.exceptions import (
    AuthError,
    ConfigError,
    GymSyncError,
    LoadError,
    RepositoryError,
    SyncError,
    TransportError,
)
from gymsync.models import (
    Entity,
    Exercise,
    ExerciseLog,
    ExerciseType,
    Program,
    Routine,
    SetLog,
    WorkoutSession,
)
from gymsync.repositories import (
    LocalRepository,
    MemoryKeyValueStore,
    RemoteRepository,
    Repository,
    SqliteKeyValueStore,
    create_repository,
)
from gymsync.sync import AppError, EntityStore, ErrorReporter, RollbackManager, SyncQueue, SyncState
from gymsync.tracker import Tracker

__all__ = [
    "__version__",
    "AppError",
    "AuthError",
    "ConfigError",
    "Delta",
    "Entity",
    "EntityStore",
    "ErrorReporter",
    "Exercise",
    "ExerciseLog",
    "ExerciseType",
    "GymSyncError",
    "LoadError",
    "LocalBackend",
    "LocalRepository",
    "MemoryKeyValueStore",
    "Program",
    "RemoteBackend",
    "RemoteRepository",
    "Repository",
    "RepositoryError",
    "RollbackManager",
    "Routine",
    "SetLog",
    "SqliteKeyValueStore",
    "SyncError",
    "SyncQueue",
    "SyncState",
    "Tracker",
    "TrackerConfig",
    "TransportError",
    "WorkoutSession",
    "compute_delta",
    "create_repository",
    "deep_equal",
]
