"""Field name ↔ column name translation for remote rows.

Entities use camelCase keys, remote tables use snake_case columns. The
translation is an explicit table built once per entity shape (the frozen
set of keys) and cached, rather than a string transform applied to every
key of every row. Per-collection overrides pin names that must not follow
the generic rule. Only top-level keys are translated; nested JSON values
are stored as they are.
"""

from __future__ import annotations

import dataclasses
import functools
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic.alias_generators import to_camel, to_snake

Overrides = tuple[tuple[str, str], ...]


@dataclasses.dataclass(frozen=True)
class FieldNameMap:
    """Bidirectional name table for one entity shape."""

    to_column: Mapping[str, str]
    to_field: Mapping[str, str]

    def columns(self, entity: Mapping[str, Any]) -> dict[str, Any]:
        return {self.to_column[key]: value for key, value in entity.items()}

    def fields(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {self.to_field[key]: value for key, value in row.items()}


def _freeze(pairs: dict[str, str]) -> Mapping[str, str]:
    return MappingProxyType(pairs)


def _inverse(pairs: Mapping[str, str], what: str) -> dict[str, str]:
    inverse: dict[str, str] = {}
    for key, value in pairs.items():
        if value in inverse:
            raise ValueError(f"{what} {inverse[value]!r} and {key!r} both translate to {value!r}")
        inverse[value] = key
    return inverse


@functools.lru_cache(maxsize=256)
def _map_for_fields(fields: frozenset[str], overrides: Overrides) -> FieldNameMap:
    pinned = dict(overrides)
    to_column = {name: pinned.get(name, to_snake(name)) for name in fields}
    return FieldNameMap(to_column=_freeze(to_column), to_field=_freeze(_inverse(to_column, "fields")))


@functools.lru_cache(maxsize=256)
def _map_for_columns(columns: frozenset[str], overrides: Overrides) -> FieldNameMap:
    pinned = {column: name for name, column in overrides}
    to_field = {column: pinned.get(column, to_camel(column)) for column in columns}
    return FieldNameMap(to_column=_freeze(_inverse(to_field, "columns")), to_field=_freeze(to_field))


class FieldTranslator:
    """Translate entity dicts to rows and back for one table."""

    def __init__(self, overrides: Mapping[str, str] | None = None) -> None:
        self._overrides: Overrides = tuple(sorted((overrides or {}).items()))

    def for_fields(self, fields: Iterable[str]) -> FieldNameMap:
        return _map_for_fields(frozenset(fields), self._overrides)

    def for_columns(self, columns: Iterable[str]) -> FieldNameMap:
        return _map_for_columns(frozenset(columns), self._overrides)

    def to_row(self, entity: Mapping[str, Any]) -> dict[str, Any]:
        return self.for_fields(entity.keys()).columns(entity)

    def to_entity(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return self.for_columns(row.keys()).fields(row)


def cache_info() -> tuple[Any, Any]:
    """Hit/miss statistics of both translation caches."""
    return _map_for_fields.cache_info(), _map_for_columns.cache_info()
