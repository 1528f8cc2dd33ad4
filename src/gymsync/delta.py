"""Minimal create/update/delete sets between two collection states.

Everything here is pure: no I/O, no logging, no mutation of inputs.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from gymsync._dates import epoch_ms
from gymsync.models._base import Entity, Snapshot, entity_id


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality tuned for entity payloads.

    * Two datetimes are equal when they denote the same epoch millisecond,
      even if they are distinct objects or carry different time zones.
    * Mappings and sequences are compared element by element, never by
      identity. A mapping never equals a sequence.
    * ``None`` only equals ``None``; booleans never equal numbers.
    """
    if left is right:
        return True
    if left is None or right is None:
        return False

    if isinstance(left, datetime) or isinstance(right, datetime):
        if isinstance(left, datetime) and isinstance(right, datetime):
            return epoch_ms(left) == epoch_ms(right)
        return False

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if isinstance(left, Mapping) or isinstance(right, Mapping):
        if not (isinstance(left, Mapping) and isinstance(right, Mapping)):
            return False
        if len(left) != len(right):
            return False
        return all(key in right and deep_equal(value, right[key]) for key, value in left.items())

    if _is_sequence(left) or _is_sequence(right):
        if not (_is_sequence(left) and _is_sequence(right)):
            return False
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right, strict=True))

    return bool(left == right)


@dataclasses.dataclass(frozen=True)
class Delta:
    """Changes needed to move a backend from one collection state to another."""

    to_create: tuple[Entity, ...] = ()
    to_update: tuple[Entity, ...] = ()
    to_delete: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)

    def __len__(self) -> int:
        return len(self.to_create) + len(self.to_update) + len(self.to_delete)


def compute_delta(previous: Mapping[str, Entity], next_items: Iterable[Entity]) -> Delta:
    """Diff *next_items* against the *previous* snapshot.

    ``to_create`` holds items whose id is unknown to the snapshot,
    ``to_update`` items whose content changed, ``to_delete`` the ids of
    snapshot entries missing from *next_items*. No ordering is implied.
    """
    to_create: list[Entity] = []
    to_update: list[Entity] = []
    seen: set[str] = set()

    for item in next_items:
        item_id = entity_id(item)
        seen.add(item_id)
        existing = previous.get(item_id)
        if existing is None:
            to_create.append(item)
        elif not deep_equal(existing, item):
            to_update.append(item)

    to_delete = tuple(item_id for item_id in previous if item_id not in seen)
    return Delta(to_create=tuple(to_create), to_update=tuple(to_update), to_delete=to_delete)


def snapshot_of(items: Iterable[Entity]) -> Snapshot:
    """Index deep copies of *items* by id.

    The snapshot owns its entities: editing a caller's dict in place must
    not move the confirmed state.
    """
    return {entity_id(item): copy.deepcopy(item) for item in items}
