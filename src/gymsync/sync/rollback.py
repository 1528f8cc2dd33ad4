"""Revert optimistic state after a failed sync."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from gymsync.models._base import Entity

if TYPE_CHECKING:
    from gymsync.sync.store import EntityStore

_logger = logging.getLogger(__name__)


class RollbackManager:
    """Restore an :class:`EntityStore` to a known-good snapshot.

    Only the visible state changes, and it receives copies of the snapshot
    entities. The store's snapshot was never advanced by the failed
    attempt, so the next ``set()`` diffs against the true last-good state.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    def rollback(self, store: EntityStore, snapshot: Mapping[str, Entity]) -> None:
        items = copy.deepcopy(list(snapshot.values()))
        self._logger.info(
            "Rolling back %s to last confirmed state (%d items)",
            store.collection,
            len(items),
        )
        store.restore(items)
