"""On-device repository backed by a text key-value store.

Each collection lives under a single key, ``<namespace>:<collection>``,
whose value is a JSON array of entities with ISO-8601 date strings.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol

import aiosqlite

from gymsync._dates import decode_dates, encode_dates
from gymsync.exceptions import RepositoryError
from gymsync.models._base import Entity, entity_id
from gymsync.repositories.base import Repository

_logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Structural interface for a persistent text store.

    Implementations raise whatever their backend raises; the repository
    wraps those errors.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store. Contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqliteKeyValueStore:
    """Key-value store kept in a single SQLite table via aiosqlite."""

    _SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ready = False

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await aiosqlite.connect(self._db_path)
        try:
            if not self._ready:
                await conn.execute(self._SCHEMA)
                self._ready = True
            yield conn
            await conn.commit()
        finally:
            await conn.close()

    async def get(self, key: str) -> str | None:
        async with self._connection() as conn:
            cursor = await conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return None if row is None else str(row[0])

    async def set(self, key: str, value: str) -> None:
        async with self._connection() as conn:
            await conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    async def delete(self, key: str) -> None:
        async with self._connection() as conn:
            await conn.execute("DELETE FROM kv WHERE key = ?", (key,))


def storage_key(namespace: str, collection: str) -> str:
    return f"{namespace}:{collection}"


class LocalRepository(Repository):
    """Repository over one key of a :class:`KeyValueStore`.

    Every operation reads the whole collection, changes it and writes it
    back, so read-modify-write cycles are serialized with a lock.
    """

    def __init__(
        self,
        store: KeyValueStore,
        collection: str,
        *,
        namespace: str,
        logger: logging.Logger | None = None,
    ) -> None:
        self.collection = collection
        self.key = storage_key(namespace, collection)
        self._store = store
        self._lock = asyncio.Lock()
        self._logger = logger or _logger

    def _error(self, operation: str, exc: Exception) -> RepositoryError:
        return RepositoryError(
            f"Local {operation} on {self.key} failed: {exc}",
            collection=self.collection,
            operation=operation,
        )

    async def _load(self, operation: str) -> list[Entity]:
        try:
            text = await self._store.get(self.key)
        except Exception as exc:
            raise self._error(operation, exc) from exc
        if text is None:
            return []
        try:
            data: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise self._error(operation, exc) from exc
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise RepositoryError(
                f"Local {operation} on {self.key} failed: stored value is not a JSON array of objects",
                collection=self.collection,
                operation=operation,
            )
        return [decode_dates(item) for item in data]

    async def _save(self, operation: str, items: list[Entity]) -> None:
        try:
            text = json.dumps(encode_dates(items), separators=(",", ":"))
            await self._store.set(self.key, text)
        except Exception as exc:
            raise self._error(operation, exc) from exc
        self._logger.debug("Saved %d %s to %s", len(items), self.collection, self.key)

    async def get_all(self) -> list[Entity]:
        async with self._lock:
            return await self._load("get_all")

    async def get_by_id(self, item_id: str) -> Entity | None:
        async with self._lock:
            items = await self._load("get_by_id")
        return next((item for item in items if item.get("id") == item_id), None)

    async def create(self, item: Entity) -> Entity:
        return (await self.batch_create([item]))[0]

    async def update(self, item_id: str, item: Entity) -> Entity:
        async with self._lock:
            items = await self._load("update")
            for index, existing in enumerate(items):
                if existing.get("id") == item_id:
                    items[index] = dict(item)
                    break
            else:
                raise RepositoryError(
                    f"Local update on {self.key} failed: no entity with id {item_id!r}",
                    collection=self.collection,
                    operation="update",
                )
            await self._save("update", items)
        return dict(item)

    async def delete(self, item_id: str) -> None:
        await self.batch_delete([item_id])

    async def clear(self) -> None:
        async with self._lock:
            try:
                await self._store.delete(self.key)
            except Exception as exc:
                raise self._error("clear", exc) from exc

    async def batch_create(self, items: Sequence[Entity]) -> list[Entity]:
        """Append *items*; an item whose id is already stored replaces it."""
        async with self._lock:
            stored = await self._load("create")
            index = {entity_id(existing): pos for pos, existing in enumerate(stored)}
            for item in items:
                pos = index.get(entity_id(item))
                if pos is None:
                    index[entity_id(item)] = len(stored)
                    stored.append(dict(item))
                else:
                    stored[pos] = dict(item)
            await self._save("create", stored)
        return [dict(item) for item in items]

    async def batch_update(self, items: Sequence[Entity]) -> list[Entity]:
        async with self._lock:
            stored = await self._load("update")
            index = {entity_id(existing): pos for pos, existing in enumerate(stored)}
            for item in items:
                pos = index.get(entity_id(item))
                if pos is None:
                    raise RepositoryError(
                        f"Local update on {self.key} failed: no entity with id {entity_id(item)!r}",
                        collection=self.collection,
                        operation="update",
                    )
                stored[pos] = dict(item)
            await self._save("update", stored)
        return [dict(item) for item in items]

    async def batch_delete(self, item_ids: Sequence[str]) -> None:
        doomed = set(item_ids)
        async with self._lock:
            stored = await self._load("delete")
            await self._save("delete", [item for item in stored if item.get("id") not in doomed])
