"""Storage backend contract.

A repository is a plain CRUD primitive over one collection. It knows
nothing about diffing, batching policy or optimistic state; those live in
:mod:`gymsync.sync`.
"""

from __future__ import annotations

import abc
from collections.abc import Sequence

from gymsync.models._base import Entity, entity_id


class Repository(abc.ABC):
    """Asynchronous CRUD over one entity collection.

    Implementations must raise :class:`~gymsync.exceptions.RepositoryError`
    (or a subclass) for every backend failure and let nothing
    backend-specific escape.

    The ``batch_*`` methods default to looping over the single-item
    operations; backends with native bulk support override them.
    """

    collection: str

    @abc.abstractmethod
    async def get_all(self) -> list[Entity]: ...

    @abc.abstractmethod
    async def get_by_id(self, item_id: str) -> Entity | None: ...

    @abc.abstractmethod
    async def create(self, item: Entity) -> Entity: ...

    @abc.abstractmethod
    async def update(self, item_id: str, item: Entity) -> Entity: ...

    @abc.abstractmethod
    async def delete(self, item_id: str) -> None: ...

    @abc.abstractmethod
    async def clear(self) -> None: ...

    async def batch_create(self, items: Sequence[Entity]) -> list[Entity]:
        return [await self.create(item) for item in items]

    async def batch_update(self, items: Sequence[Entity]) -> list[Entity]:
        return [await self.update(entity_id(item), item) for item in items]

    async def batch_delete(self, item_ids: Sequence[str]) -> None:
        for item_id in item_ids:
            await self.delete(item_id)

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
