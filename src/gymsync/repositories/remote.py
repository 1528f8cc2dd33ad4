"""Repository backed by a networked relational service.

Tables are exposed PostgREST-style under ``/rest/v1/<table>``. The service
enforces row visibility: a caller only sees and changes rows whose
``user_id`` column is its own id. This adapter never filters by owner on
reads and only sets the owner on rows it creates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from gymsync._constants import OWNER_COLUMN, table_for
from gymsync._dates import decode_dates, encode_dates
from gymsync.exceptions import AuthError, RepositoryError, TransportError
from gymsync.models._base import Entity
from gymsync.repositories._http import RemoteTransport
from gymsync.repositories.base import Repository
from gymsync.repositories.fields import FieldTranslator
from gymsync.repositories.identity import DEFAULT_IDENTITY_TTL, RemoteIdentity

_logger = logging.getLogger(__name__)

_USER_ENDPOINT = "/auth/v1/user"
_RETURN_ROWS = "return=representation"
_UPSERT_ROWS = "return=representation,resolution=merge-duplicates"


class RemoteAuth:
    """Resolve and cache the authenticated caller.

    Shared by every remote repository of one tracker so the identity is
    looked up once, not once per collection.
    """

    def __init__(
        self,
        transport: RemoteTransport,
        *,
        ttl: float = DEFAULT_IDENTITY_TTL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._ttl = ttl
        self._identity: RemoteIdentity | None = None
        self._lock = asyncio.Lock()
        self._logger = logger or _logger

    async def resolve(self) -> RemoteIdentity:
        """Return the current identity, looking it up if needed.

        Raises :class:`AuthError` without touching the network when no
        access token is configured.
        """
        if not self._transport.has_access_token:
            raise AuthError("User must be authenticated to write remote data", operation="auth")
        # Collections syncing concurrently share one lookup.
        async with self._lock:
            if self._identity is not None and not self._identity.is_expired:
                return self._identity

            payload = await self._transport.request("GET", _USER_ENDPOINT)
            user_id = payload.get("id") if isinstance(payload, dict) else None
            if not isinstance(user_id, str) or not user_id.strip():
                raise AuthError("Auth endpoint returned no user id", operation="auth")
            try:
                self._identity = RemoteIdentity(user_id=user_id, email=payload.get("email"), ttl=self._ttl)
            except ValidationError as exc:
                raise AuthError(f"Auth endpoint returned an invalid identity: {exc}", operation="auth") from exc
            self._logger.debug("Resolved remote identity")
            return self._identity

    def invalidate(self) -> None:
        """Force a fresh lookup on the next write."""
        self._identity = None


def _in_filter(values: Sequence[str]) -> str:
    quoted = ",".join('"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"' for value in values)
    return f"in.({quoted})"


class RemoteRepository(Repository):
    """Repository over one remote table."""

    def __init__(
        self,
        transport: RemoteTransport,
        collection: str,
        *,
        auth: RemoteAuth,
        table: str | None = None,
        field_overrides: Mapping[str, str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.collection = collection
        self.table = table or table_for(collection)
        self._transport = transport
        self._auth = auth
        self._fields = FieldTranslator(field_overrides)
        self._path = f"/rest/v1/{self.table}"
        # Columns seen in rows read or written so far.
        self._columns: set[str] = set()
        self._logger = logger or _logger

    # ------------------------------------------------------------------
    # Row codec
    # ------------------------------------------------------------------

    def _to_row(self, entity: Mapping[str, Any], owner: str | None = None) -> dict[str, Any]:
        try:
            row = self._fields.to_row(encode_dates(entity))
        except ValueError as exc:
            raise RepositoryError(str(exc), collection=self.collection, operation="encode") from exc
        row.pop(OWNER_COLUMN, None)
        if owner is not None:
            row[OWNER_COLUMN] = owner
        return row

    def _to_entity(self, row: Mapping[str, Any]) -> Entity:
        self._columns.update(row.keys())
        # Entities omit unset optional fields; the service returns them as null.
        visible = {key: value for key, value in row.items() if key != OWNER_COLUMN and value is not None}
        return decode_dates(self._fields.to_entity(visible))

    def _with_nulls(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Null out known columns the rows leave out.

        An entity drops an optional field by omitting it, and neither a
        PATCH nor a merge-duplicates upsert touches columns absent from
        the body, so removed fields are sent as explicit nulls. Every row
        of a batch ends up with the same columns.
        """
        columns = set(self._columns)
        for row in rows:
            columns.update(row.keys())
        columns.discard(OWNER_COLUMN)
        for row in rows:
            for column in columns:
                row.setdefault(column, None)
            self._columns.update(row.keys())
        return rows

    def _rows(self, payload: Any, operation: str) -> list[Entity]:
        if payload is None:
            return []
        if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
            raise TransportError(
                f"Unexpected {operation} response from {self.table}",
                collection=self.collection,
                operation=operation,
            )
        return [self._to_entity(row) for row in payload]

    async def _call(
        self,
        operation: str,
        method: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        try:
            return await self._transport.request(method, self._path, params=params, body=body, prefer=prefer)
        except RepositoryError as exc:
            if isinstance(exc, AuthError):
                self._auth.invalidate()
            exc.collection = exc.collection or self.collection
            exc.operation = operation
            raise

    async def _owner(self) -> str:
        try:
            identity = await self._auth.resolve()
        except RepositoryError as exc:
            exc.collection = exc.collection or self.collection
            raise
        return identity.user_id

    # ------------------------------------------------------------------
    # Reads (row visibility is enforced by the service)
    # ------------------------------------------------------------------

    async def get_all(self) -> list[Entity]:
        payload = await self._call("get_all", "GET", params={"select": "*", "order": "created_at.desc"})
        return self._rows(payload, "get_all")

    async def get_by_id(self, item_id: str) -> Entity | None:
        payload = await self._call("get_by_id", "GET", params={"select": "*", "id": f"eq.{item_id}", "limit": "1"})
        rows = self._rows(payload, "get_by_id")
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Writes (identity resolved first)
    # ------------------------------------------------------------------

    async def create(self, item: Entity) -> Entity:
        rows = await self.batch_create([item])
        return rows[0] if rows else dict(item)

    async def update(self, item_id: str, item: Entity) -> Entity:
        await self._owner()
        payload = await self._call(
            "update",
            "PATCH",
            params={"id": f"eq.{item_id}"},
            body=self._with_nulls([self._to_row(item)])[0],
            prefer=_RETURN_ROWS,
        )
        rows = self._rows(payload, "update")
        if not rows:
            raise RepositoryError(
                f"Update of {item_id!r} in {self.table} matched no visible row",
                collection=self.collection,
                operation="update",
            )
        return rows[0]

    async def delete(self, item_id: str) -> None:
        await self._owner()
        await self._call("delete", "DELETE", params={"id": f"eq.{item_id}"})

    async def clear(self) -> None:
        """Delete every row owned by the caller."""
        owner = await self._owner()
        await self._call("clear", "DELETE", params={OWNER_COLUMN: f"eq.{owner}"})

    async def batch_create(self, items: Sequence[Entity]) -> list[Entity]:
        """Insert *items*; rows whose id already exists are overwritten."""
        if not items:
            return []
        owner = await self._owner()
        payload = await self._call(
            "create",
            "POST",
            params={"on_conflict": "id"},
            body=[self._to_row(item, owner) for item in items],
            prefer=_UPSERT_ROWS,
        )
        self._logger.debug("Created %d rows in %s", len(items), self.table)
        return self._rows(payload, "create")

    async def batch_update(self, items: Sequence[Entity]) -> list[Entity]:
        if not items:
            return []
        owner = await self._owner()
        payload = await self._call(
            "update",
            "POST",
            params={"on_conflict": "id"},
            body=self._with_nulls([self._to_row(item, owner) for item in items]),
            prefer=_UPSERT_ROWS,
        )
        self._logger.debug("Updated %d rows in %s", len(items), self.table)
        return self._rows(payload, "update")

    async def batch_delete(self, item_ids: Sequence[str]) -> None:
        if not item_ids:
            return
        await self._owner()
        await self._call("delete", "DELETE", params={"id": _in_filter(item_ids)})
        self._logger.debug("Deleted %d rows from %s", len(item_ids), self.table)
