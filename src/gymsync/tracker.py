"""High-level entry point wiring one store per tracker collection."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from gymsync._constants import (
    COLLECTION_TABLES,
    EXERCISE_TYPES,
    EXERCISES,
    PROGRAMS,
    ROUTINES,
    WORKOUT_SESSIONS,
)
from gymsync.config import Backend, LocalBackend, RemoteBackend, TrackerConfig
from gymsync.exceptions import GymSyncError, LoadError
from gymsync.models._base import remove_from, touch
from gymsync.repositories import (
    HttpRemoteTransport,
    KeyValueStore,
    MemoryKeyValueStore,
    RemoteAuth,
    RemoteTransport,
    Repository,
    SqliteKeyValueStore,
    create_repository,
)
from gymsync.sync.errors import ErrorReporter, Scheduler
from gymsync.sync.rollback import RollbackManager
from gymsync.sync.store import EntityStore


class Tracker:
    """Workout tracker data layer.

    Usage::

        async with Tracker(TrackerConfig.from_env()) as tracker:
            await tracker.load()
            tracker.exercise_types.set([...])
            await tracker.wait_idle()

    The logger passed in (or ``logging.getLogger("gymsync")``) is handed to
    every component; each collection logs through a child logger named
    after it.
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        http_session: aiohttp.ClientSession | None = None,
        kv_store: KeyValueStore | None = None,
        transport: RemoteTransport | None = None,
        scheduler: Scheduler | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._external_session = http_session is not None
        self._http_session = http_session
        self._kv_store = kv_store
        self._transport = transport
        self._scheduler = scheduler
        self._logger = logger or logging.getLogger("gymsync")
        self._backend: Backend | None = None
        self._errors: ErrorReporter | None = None
        self._stores: dict[str, EntityStore] = {}
        self._repositories: list[Repository] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Tracker:
        backend = self._config.resolve_backend(self._logger)
        self._backend = backend
        repo_kwargs: dict[str, Any] = {}

        match backend:
            case LocalBackend(data_path=data_path):
                if self._kv_store is None:
                    self._kv_store = SqliteKeyValueStore(data_path) if data_path else MemoryKeyValueStore()
                repo_kwargs["kv_store"] = self._kv_store
            case RemoteBackend():
                if self._transport is None:
                    if self._http_session is None:
                        self._http_session = aiohttp.ClientSession()
                    self._transport = HttpRemoteTransport(
                        backend,
                        self._http_session,
                        logger=self._logger.getChild("http"),
                    )
                repo_kwargs["transport"] = self._transport
                repo_kwargs["auth"] = RemoteAuth(self._transport, logger=self._logger.getChild("auth"))

        self._logger.info("Using %s storage backend", type(backend).__name__)
        self._errors = ErrorReporter(
            ttl=self._config.error_ttl,
            scheduler=self._scheduler,
            logger=self._logger.getChild("errors"),
        )
        rollback = RollbackManager(logger=self._logger.getChild("rollback"))
        for collection in COLLECTION_TABLES:
            child = self._logger.getChild(collection)
            repository = create_repository(backend, collection, logger=child, **repo_kwargs)
            self._repositories.append(repository)
            self._stores[collection] = EntityStore(
                repository,
                errors=self._errors,
                rollback=rollback,
                logger=child,
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        try:
            await self.wait_idle()
        finally:
            for repository in self._repositories:
                await repository.close()
            if not self._external_session and self._http_session is not None:
                await self._http_session.close()
                self._http_session = None
            self._repositories.clear()
            self._stores.clear()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def store(self, collection: str) -> EntityStore:
        if not self._stores:
            raise GymSyncError("Tracker not initialized. Use 'async with Tracker(...) as tracker:'")
        try:
            return self._stores[collection]
        except KeyError:
            raise GymSyncError(f"Unknown collection: {collection!r}") from None

    @property
    def backend(self) -> Backend | None:
        return self._backend

    @property
    def errors(self) -> ErrorReporter:
        if self._errors is None:
            raise GymSyncError("Tracker not initialized. Use 'async with Tracker(...) as tracker:'")
        return self._errors

    @property
    def exercise_types(self) -> EntityStore:
        return self.store(EXERCISE_TYPES)

    @property
    def exercises(self) -> EntityStore:
        return self.store(EXERCISES)

    @property
    def routines(self) -> EntityStore:
        return self.store(ROUTINES)

    @property
    def programs(self) -> EntityStore:
        return self.store(PROGRAMS)

    @property
    def workout_sessions(self) -> EntityStore:
        return self.store(WORKOUT_SESSIONS)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load(self) -> dict[str, LoadError]:
        """Load every collection concurrently.

        A failing collection does not affect the others; its
        :class:`LoadError` is returned keyed by collection name.
        """
        stores = [self.store(name) for name in COLLECTION_TABLES]
        results = await asyncio.gather(*(store.load() for store in stores), return_exceptions=True)
        failures: dict[str, LoadError] = {}
        for store, result in zip(stores, results, strict=True):
            if isinstance(result, LoadError):
                failures[store.collection] = result
            elif isinstance(result, BaseException):
                raise result
        return failures

    async def wait_idle(self) -> None:
        """Wait until every collection has finished syncing."""
        await asyncio.gather(*(store.wait_idle() for store in self._stores.values()))

    def delete_exercise_type(self, exercise_type_id: str) -> None:
        """Remove an exercise type, its exercises, and its routine slots."""
        self.exercise_types.set(remove_from(self.exercise_types.get(), exercise_type_id))
        self.exercises.set(
            [item for item in self.exercises.get() if item.get("exerciseTypeId") != exercise_type_id]
        )

        def strip(routine: dict[str, Any]) -> dict[str, Any]:
            ids = routine.get("exerciseTypeIds", [])
            if exercise_type_id not in ids:
                return routine
            return touch({**routine, "exerciseTypeIds": [i for i in ids if i != exercise_type_id]})

        self.routines.set([strip(routine) for routine in self.routines.get()])
