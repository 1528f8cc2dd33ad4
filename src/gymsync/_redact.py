"""Helpers for safe debug logging of remote traffic.

Requests carry the service key and the user's bearer token; rows carry the
owner's id. Batch bodies can hold a whole collection. ``redact_for_log``
masks the former and caps the latter before anything reaches DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from gymsync._constants import OWNER_COLUMN

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "authorization",
        "access_token",
        "accesstoken",
        "refresh_token",
        "refreshtoken",
        "password",
        "token",
        "cookie",
        "remote_key",
    }
)

# Personal data: kept out of logs but not secret.
_PERSONAL_KEYS: frozenset[str] = frozenset({OWNER_COLUMN, "userid", "email"})

_MAX_DEPTH = 20


def _mask_secret(value: Any) -> str:
    """Keep the scheme and last four characters of a credential."""
    if not isinstance(value, str) or len(value) < 12:
        return "<redacted>"
    scheme, _, token = value.rpartition(" ")
    prefix = f"{scheme} " if scheme else ""
    return f"{prefix}…{token[-4:]}"


def redact_for_log(
    value: Any,
    *,
    max_string: int = 512,
    max_items: int = 20,
    _depth: int = 0,
) -> Any:
    """Return a copy of *value* that is safe and small enough for debug logs."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    match value:
        case None | bool() | int() | float():
            return value
        case str() if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        case str():
            return value
        case datetime():
            return value.isoformat()
        case bytes() | bytearray():
            return f"<bytes:{len(value)}b>"
        case Mapping():
            redacted: dict[str, Any] = {}
            for k, v in value.items():
                key = str(k)
                lowered = key.lower()
                if lowered in _SECRET_KEYS:
                    redacted[key] = _mask_secret(v)
                elif lowered in _PERSONAL_KEYS:
                    redacted[key] = "<personal>"
                else:
                    redacted[key] = redact_for_log(
                        v, max_string=max_string, max_items=max_items, _depth=_depth + 1
                    )
            return redacted
        case Sequence():
            head = [
                redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
                for v in value[:max_items]
            ]
            if len(value) > max_items:
                head.append(f"<+{len(value) - max_items} more>")
            return head

    return repr(value)
