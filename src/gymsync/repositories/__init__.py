"""Storage backends.

:func:`create_repository` turns a resolved backend variant into a
repository for one collection. The variant is inspected exactly once, here.
"""

from __future__ import annotations

import logging

from gymsync.config import Backend, LocalBackend, RemoteBackend
from gymsync.exceptions import ConfigError
from gymsync.repositories._http import HttpRemoteTransport, RemoteTransport
from gymsync.repositories.base import Repository
from gymsync.repositories.fields import FieldNameMap, FieldTranslator
from gymsync.repositories.identity import RemoteIdentity
from gymsync.repositories.local import (
    KeyValueStore,
    LocalRepository,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    storage_key,
)
from gymsync.repositories.remote import RemoteAuth, RemoteRepository


def create_repository(
    backend: Backend,
    collection: str,
    *,
    kv_store: KeyValueStore | None = None,
    transport: RemoteTransport | None = None,
    auth: RemoteAuth | None = None,
    logger: logging.Logger | None = None,
) -> Repository:
    """Build the repository for *collection* on *backend*.

    Local backends need *kv_store*; remote backends need *transport* and
    *auth*. Missing collaborators raise :class:`ConfigError`.
    """
    match backend:
        case LocalBackend(namespace=namespace):
            if kv_store is None:
                raise ConfigError("local backend requires a key-value store")
            return LocalRepository(kv_store, collection, namespace=namespace, logger=logger)
        case RemoteBackend():
            if transport is None or auth is None:
                raise ConfigError("remote backend requires a transport and auth resolver")
            return RemoteRepository(transport, collection, auth=auth, logger=logger)
    raise ConfigError(f"unsupported backend: {backend!r}")


__all__ = [
    "FieldNameMap",
    "FieldTranslator",
    "HttpRemoteTransport",
    "KeyValueStore",
    "LocalRepository",
    "MemoryKeyValueStore",
    "RemoteAuth",
    "RemoteIdentity",
    "RemoteRepository",
    "RemoteTransport",
    "Repository",
    "SqliteKeyValueStore",
    "create_repository",
    "storage_key",
]
