"""Base model and entity helpers.

Inside the sync layer an entity is a plain ``dict`` keyed in camelCase
with at least an ``id``. The pydantic models in this package describe the
shapes the tracker stores and are the factories that produce such dicts:

* ``alias_generator=to_camel`` so snake_case fields dump to the camelCase
  keys the collections use.
* ``id`` defaults to a fresh UUID4, ``created_at``/``updated_at`` to the
  same UTC instant.
* :meth:`TrackerBaseModel.to_entity` dumps by alias and drops unset
  optional fields.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Entity = dict[str, Any]
"""A record with a unique string ``id`` plus arbitrary attributes."""

Snapshot = dict[str, Entity]
"""Last confirmed collection state, indexed by id."""

M = TypeVar("M", bound="TrackerBaseModel")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


def entity_id(entity: Mapping[str, Any]) -> str:
    """Return the id of *entity*, rejecting records without a string id."""
    value = entity.get("id")
    if not isinstance(value, str) or not value:
        raise ValueError(f"entity has no string id: {value!r}")
    return value


class TrackerBaseModel(BaseModel):
    """Base for stored value objects (nested logs, sets)."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_entity(self) -> Entity:
        """Dump to a camelCase dict suitable for an entity collection."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_entity(cls: type[M], entity: Mapping[str, Any]) -> M:
        return cls.model_validate(dict(entity))


class EntityModel(TrackerBaseModel):
    """Base for top-level collection entities."""

    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _default_updated_at(self) -> EntityModel:
        """New entities start with ``updated_at == created_at``."""
        if self.updated_at is None:
            object.__setattr__(self, "updated_at", self.created_at)
        return self


# ---------------------------------------------------------------------------
# Collection helpers. All of them return new lists and leave inputs intact.
# ---------------------------------------------------------------------------


def touch(entity: Mapping[str, Any], *, now: datetime | None = None) -> Entity:
    """Return a copy of *entity* with a fresh ``updatedAt``."""
    return {**entity, "updatedAt": now or _utcnow()}


def add_to(items: Iterable[Entity], entity: Entity) -> list[Entity]:
    return [*items, entity]


def update_in(items: Iterable[Entity], item_id: str, updater: Callable[[Entity], Entity]) -> list[Entity]:
    """Replace the entity with *item_id* by ``updater(entity)``."""
    return [updater(item) if item.get("id") == item_id else item for item in items]


def remove_from(items: Iterable[Entity], item_id: str) -> list[Entity]:
    return [item for item in items if item.get("id") != item_id]
