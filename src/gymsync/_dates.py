"""Date handling shared by the delta computer and the storage codecs.

Storage backends only hold text, so datetimes travel as ISO-8601 strings
(``2024-05-01T17:03:00.000Z``) and are revived on the way back in. The
revival is recursive: dates nested inside lists and dicts (e.g. set logs
inside a workout session) are converted too.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)

# Anything starting with a full date-time that also parses is a timestamp.
_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime. Naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def epoch_ms(value: datetime) -> int:
    """Milliseconds since the epoch, truncated."""
    return (as_utc(value) - _EPOCH) // _ONE_MS


def to_iso(value: datetime) -> str:
    """Format *value* as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime | None:
    """Parse an ISO-8601 date-time string, or return ``None`` if it is not one."""
    if not _ISO_DATETIME.match(value):
        return None
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def encode_dates(value: Any) -> Any:
    """Return a copy of *value* with every datetime replaced by its ISO string."""
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, Mapping):
        return {key: encode_dates(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_dates(item) for item in value]
    return value


def decode_dates(value: Any) -> Any:
    """Return a copy of *value* with every ISO date-time string revived."""
    if isinstance(value, str):
        parsed = parse_iso(value)
        return value if parsed is None else parsed
    if isinstance(value, Mapping):
        return {key: decode_dates(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_dates(item) for item in value]
    return value
