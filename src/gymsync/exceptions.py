"""Custom exception hierarchy for gymsync."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gymsync.delta import Delta


class GymSyncError(Exception):
    """Base exception for all gymsync errors."""


class ConfigError(GymSyncError):
    """Invalid or missing configuration."""


class RepositoryError(GymSyncError):
    """A storage backend operation failed.

    Every repository implementation wraps its backend-specific failures
    (I/O, HTTP, JSON decoding) into this type so callers only ever have to
    handle one failure signal.
    """

    def __init__(
        self,
        message: str,
        *,
        collection: str = "",
        operation: str = "",
    ) -> None:
        self.collection = collection
        self.operation = operation
        super().__init__(message)


class TransportError(RepositoryError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        collection: str = "",
        operation: str = "",
    ) -> None:
        self.status_code = status_code
        super().__init__(message, collection=collection, operation=operation)


class AuthError(RepositoryError):
    """No authenticated identity could be resolved for a remote write.

    Raised before any network call is made for the write itself.
    """


class LoadError(GymSyncError):
    """Initial load of a collection failed.

    The collection keeps its boot-time state and writes remain disabled
    until a later ``load()`` succeeds.
    """

    def __init__(self, message: str, *, collection: str = "") -> None:
        self.collection = collection
        super().__init__(message)


class SyncError(GymSyncError):
    """A write batch partially or fully failed.

    The store is rolled back to the snapshot that existed before the
    attempt; the next ``set()`` is the retry path.
    """

    def __init__(
        self,
        message: str,
        *,
        collection: str = "",
        delta: Delta | None = None,
    ) -> None:
        self.collection = collection
        self.delta = delta
        super().__init__(message)
