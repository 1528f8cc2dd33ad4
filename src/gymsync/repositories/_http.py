"""HTTP transport for the remote relational service."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from gymsync._redact import redact_for_log
from gymsync.config import RemoteBackend
from gymsync.exceptions import AuthError, TransportError

_logger = logging.getLogger(__name__)

_AUTH_FAILURE_STATUSES = frozenset({401, 403})


class RemoteTransport(Protocol):
    """Structural transport interface used by :class:`RemoteRepository`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpRemoteTransport`) concrete.
    """

    @property
    def has_access_token(self) -> bool: ...

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any: ...


class HttpRemoteTransport:
    """aiohttp transport that adds the service key and bearer token."""

    def __init__(
        self,
        backend: RemoteBackend,
        http_session: aiohttp.ClientSession,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=backend.timeout)
        self._logger = logger or _logger

    @property
    def has_access_token(self) -> bool:
        return bool(self._backend.access_token)

    def _headers(self, prefer: str | None) -> dict[str, str]:
        bearer = self._backend.access_token or self._backend.key
        headers = {
            "apikey": self._backend.key,
            "authorization": f"Bearer {bearer}",
            "accept": "application/json",
            "content-type": "application/json",
        }
        if prefer:
            headers["prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (``None`` if empty)."""
        url = f"{self._backend.url}{path}"
        headers = self._headers(prefer)
        data = None if body is None else json.dumps(body, separators=(",", ":"))

        self._logger.debug(
            "%s %s params=%s headers=%s body=%s",
            method,
            url,
            dict(params or {}),
            redact_for_log(headers),
            redact_for_log(body),
        )

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params or {}),
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise TransportError(f"{method} {path} failed: {exc}", operation=method) from exc
        except TimeoutError as exc:
            raise TransportError(f"{method} {path} timed out", operation=method) from exc
        except UnicodeDecodeError as exc:
            raise TransportError(f"Undecodable body from {path}", operation=method) from exc

        if status in _AUTH_FAILURE_STATUSES:
            raise AuthError(f"HTTP {status} from {path}: {text[:200]}", operation=method)
        if not 200 <= status < 300:
            raise TransportError(
                f"HTTP {status} from {path}: {text[:200]}",
                status_code=status,
                operation=method,
            )

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=status,
                operation=method,
            ) from exc
