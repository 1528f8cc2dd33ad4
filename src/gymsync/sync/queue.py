"""Per-collection single-flight write scheduler.

At most one write batch per collection is in flight. While it runs, newer
desired states overwrite a single pending slot (latest wins); when the
batch settles the pending state, if any, is diffed against the snapshot
as it stands then and sent as the next batch. Superseded states are never
sent, and a running batch is always awaited to completion.

State per collection::

    IDLE --submit--> SYNCING --success/failure, nothing pending--> IDLE
                       |  ^
                       +--+ success/failure with a pending state
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from enum import StrEnum

from gymsync.delta import Delta, compute_delta
from gymsync.exceptions import RepositoryError, SyncError
from gymsync.models._base import Entity
from gymsync.repositories.base import Repository

_logger = logging.getLogger(__name__)


class SyncState(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"


class SyncQueue:
    """Serialize writes of one collection to its repository.

    Parameters
    ----------
    repository : Repository
        Backend the deltas are applied to.
    snapshot : callable
        Returns the last confirmed state. Read at the start of each cycle.
    on_success : callable
        Called with the payload that was just made durable.
    on_failure : callable
        Called with the snapshot read at the start of the failed cycle and
        the :class:`SyncError` describing the failure.
    """

    def __init__(
        self,
        repository: Repository,
        *,
        snapshot: Callable[[], Mapping[str, Entity]],
        on_success: Callable[[list[Entity]], None],
        on_failure: Callable[[Mapping[str, Entity], SyncError], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._repository = repository
        self._snapshot = snapshot
        self._on_success = on_success
        self._on_failure = on_failure
        self._logger = logger or _logger
        self._state = SyncState.IDLE
        self._pending: list[Entity] | None = None
        self._task: asyncio.Task[None] | None = None
        self.batches_sent = 0

    @property
    def collection(self) -> str:
        return self._repository.collection

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def submit(self, items: Iterable[Entity]) -> None:
        """Request that the backend converge to *items*. Never blocks."""
        payload = list(items)
        if self._state is SyncState.SYNCING:
            if self._pending is not None:
                self._logger.debug("Superseding pending %s payload", self.collection)
            self._pending = payload
            return

        self._state = SyncState.SYNCING
        self._task = asyncio.get_running_loop().create_task(
            self._run(payload),
            name=f"gymsync-sync-{self.collection}",
        )

    async def wait_idle(self) -> None:
        """Wait until no batch is running and nothing is pending."""
        while self._task is not None:
            await asyncio.shield(self._task)

    async def _run(self, payload: list[Entity]) -> None:
        current: list[Entity] | None = payload
        try:
            while current is not None:
                await self._sync_once(current)
                current, self._pending = self._pending, None
        finally:
            self._state = SyncState.IDLE
            self._task = None

    async def _sync_once(self, payload: list[Entity]) -> None:
        prior = dict(self._snapshot())
        delta = compute_delta(prior, payload)
        if delta.is_empty:
            self._logger.debug("No changes to sync for %s", self.collection)
            self._on_success(payload)
            return

        self._logger.debug(
            "Syncing %s: %d create, %d update, %d delete",
            self.collection,
            len(delta.to_create),
            len(delta.to_update),
            len(delta.to_delete),
        )
        try:
            await self._apply(delta)
        except RepositoryError as exc:
            self._logger.warning("Sync of %s failed: %s", self.collection, exc)
            self._fail(prior, delta, exc)
        except Exception as exc:
            self._logger.exception("Unexpected error while syncing %s", self.collection)
            self._fail(prior, delta, exc)
        else:
            self._on_success(payload)

    async def _apply(self, delta: Delta) -> None:
        """Deletes, then updates, then creates, for referential backends."""
        self.batches_sent += 1
        if delta.to_delete:
            await self._repository.batch_delete(delta.to_delete)
        if delta.to_update:
            await self._repository.batch_update(delta.to_update)
        if delta.to_create:
            await self._repository.batch_create(delta.to_create)

    def _fail(self, prior: Mapping[str, Entity], delta: Delta, exc: Exception) -> None:
        error = SyncError(
            f"Failed to save {self.collection}: {exc}",
            collection=self.collection,
            delta=delta,
        )
        error.__cause__ = exc
        self._on_failure(prior, error)
