"""Authenticated identity for remote storage."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field

#: How long a resolved identity is trusted before it is looked up again.
DEFAULT_IDENTITY_TTL: float = 10 * 60


class RemoteIdentity(BaseModel):
    """The signed-in caller, as reported by the remote auth endpoint.

    Parameters
    ----------
    user_id : str
        Owner id written to the ownership column of created rows.
    resolved_at : float
        Monotonic timestamp (``time.monotonic()``) of the lookup.
    ttl : float
        Seconds the identity may be reused before resolving it again.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    user_id: str = Field(min_length=1)
    email: str | None = None
    resolved_at: float = Field(default_factory=time.monotonic)
    ttl: float = DEFAULT_IDENTITY_TTL

    @property
    def is_expired(self) -> bool:
        """Whether the identity has exceeded its TTL."""
        return (time.monotonic() - self.resolved_at) >= self.ttl
