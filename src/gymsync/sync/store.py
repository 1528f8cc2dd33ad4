"""Optimistic in-memory handle over one entity collection."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Mapping

from gymsync.delta import snapshot_of
from gymsync.exceptions import LoadError, RepositoryError, SyncError
from gymsync.models._base import Entity, Snapshot, entity_id
from gymsync.repositories.base import Repository
from gymsync.sync.errors import ErrorReporter
from gymsync.sync.queue import SyncQueue, SyncState
from gymsync.sync.rollback import RollbackManager

_logger = logging.getLogger(__name__)


class EntityStore:
    """User-facing handle of one collection.

    ``set()`` replaces the visible state at once and hands the new state to
    a :class:`SyncQueue`; the snapshot (last confirmed state) only moves
    when a batch succeeds. On failure the visible state is rolled back to
    the snapshot and an error is reported.

    While a load is running, and until the first load succeeds, ``set()``
    only records state. A finished load submits whatever was set in the
    meantime as a delta against the freshly loaded snapshot.

    Usage::

        store = EntityStore(repository, errors=ErrorReporter())
        await store.load()
        store.set([*store.get(), ExerciseType(name="Squat").to_entity()])
        await store.wait_idle()
    """

    def __init__(
        self,
        repository: Repository,
        *,
        errors: ErrorReporter,
        rollback: RollbackManager | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.collection = repository.collection
        self._repository = repository
        self._errors = errors
        self._logger = logger or _logger
        self._rollback = rollback or RollbackManager(logger=self._logger)
        self._items: list[Entity] = []
        self._snapshot: Snapshot | None = None
        self._load_task: asyncio.Task[None] | None = None
        self._set_while_loading = False
        self._rolled_back = False
        self._queue = SyncQueue(
            repository,
            snapshot=self._confirmed,
            on_success=self._on_synced,
            on_failure=self._on_sync_failed,
            logger=self._logger,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self) -> list[Entity]:
        """Current optimistic state.

        The list is the store's own; treat it as read-only and pass a new
        list to :meth:`set`.
        """
        return self._items

    def set(self, next_items: Iterable[Entity]) -> None:
        """Replace the state now and schedule a sync. Never blocks.

        Raises :class:`ValueError` (leaving state untouched) if two items
        share an id or an item has no id.
        """
        items = list(next_items)
        ids = [entity_id(item) for item in items]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate ids in {self.collection} payload")

        self._items = items
        self._rolled_back = False
        if self._snapshot is None or self._load_task is not None:
            self._set_while_loading = True
            return
        self._queue.submit(items)

    async def load(self) -> None:
        """Load the collection and establish the snapshot.

        Concurrent calls share one backend read. A reload first lets
        running syncs settle.

        Raises :class:`LoadError` (after reporting it) when the backend
        read fails. Before the first success writes stay disabled; after
        it, state set during the failed reload is still synced.
        """
        if self._load_task is None:
            self._load_task = asyncio.get_running_loop().create_task(
                self._load(),
                name=f"gymsync-load-{self.collection}",
            )
        await asyncio.shield(self._load_task)

    async def _load(self) -> None:
        try:
            if self._snapshot is not None:
                await self._queue.wait_idle()
            try:
                items = await self._repository.get_all()
            except RepositoryError as exc:
                self._logger.error("Failed to load %s: %s", self.collection, exc)
                self._errors.add_error(f"Failed to load {self.collection}", str(exc))
                if self._snapshot is not None:
                    self._submit_recorded()
                raise LoadError(f"Failed to load {self.collection}: {exc}", collection=self.collection) from exc

            self._snapshot = snapshot_of(items)
            self._logger.debug("Loaded %d %s", len(items), self.collection)
            if not self._submit_recorded():
                self._items = list(items)
        finally:
            self._load_task = None

    def _submit_recorded(self) -> bool:
        """Submit state set while loading. Returns whether there was any."""
        if not self._set_while_loading:
            return False
        self._set_while_loading = False
        self._queue.submit(self._items)
        return True

    async def wait_idle(self) -> None:
        """Wait for in-flight and pending syncs to settle."""
        await self._queue.wait_idle()

    @property
    def is_loading(self) -> bool:
        return self._load_task is not None

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def sync_state(self) -> SyncState:
        return self._queue.state

    @property
    def snapshot(self) -> Snapshot:
        """Deep copy of the last confirmed state (empty before load)."""
        return copy.deepcopy(self._snapshot or {})

    @property
    def batches_sent(self) -> int:
        return self._queue.batches_sent

    # ------------------------------------------------------------------
    # Sync plumbing
    # ------------------------------------------------------------------

    def restore(self, items: Iterable[Entity]) -> None:
        """Overwrite the visible state without syncing. Used by rollback."""
        self._items = list(items)
        self._rolled_back = True

    def _confirmed(self) -> Mapping[str, Entity]:
        return self._snapshot or {}

    def _on_synced(self, payload: list[Entity]) -> None:
        self._snapshot = snapshot_of(payload)
        if self._rolled_back and not self._queue.has_pending:
            # A failed batch rolled the view back, then a superseding state
            # was saved: show what the backend now holds.
            self._items = list(payload)
            self._rolled_back = False

    def _on_sync_failed(self, prior: Mapping[str, Entity], error: SyncError) -> None:
        self._rollback.rollback(self, prior)
        cause = error.__cause__ if error.__cause__ is not None else error
        self._errors.add_error(f"Failed to save {self.collection}", str(cause))
