"""Tracker configuration for gymsync."""

from __future__ import annotations

import dataclasses
import logging
import os
from typing import Any

from gymsync._constants import DEFAULT_ERROR_TTL, DEFAULT_NAMESPACE
from gymsync.exceptions import ConfigError

_logger = logging.getLogger(__name__)

BACKEND_LOCAL = "local"
BACKEND_REMOTE = "remote"
_KNOWN_BACKENDS = frozenset({BACKEND_LOCAL, BACKEND_REMOTE})


def _env_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _normalize_backend(value: str | None) -> str:
    if value is None:
        return BACKEND_LOCAL
    normalized = value.strip().lower()
    if normalized in _KNOWN_BACKENDS:
        return normalized
    return BACKEND_LOCAL


@dataclasses.dataclass(frozen=True)
class LocalBackend:
    """On-device key-value storage.

    ``data_path`` selects a SQLite file; ``None`` keeps everything in memory
    for the lifetime of the process.
    """

    namespace: str = DEFAULT_NAMESPACE
    data_path: str | None = None


@dataclasses.dataclass(frozen=True)
class RemoteBackend:
    """Networked relational storage reached over HTTP."""

    url: str
    key: str
    access_token: str | None = None
    timeout: float = 10.0


Backend = LocalBackend | RemoteBackend


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    storage_backend : str
        ``"local"`` or ``"remote"``. Unrecognized values resolve to local.
    remote_url : str or None
        Base URL of the remote service (e.g. ``https://xyz.example.co``).
    remote_key : str or None
        Public API key sent as the ``apikey`` header.
    access_token : str or None
        Bearer token of the signed-in user. Remote writes are rejected
        without it.
    namespace : str
        Prefix of every local storage key (``<namespace>:<collection>``).
    data_path : str or None
        SQLite file backing the local store. ``None`` uses memory.
    error_ttl : float
        Seconds before a reported error disappears on its own.
    http_timeout : float
        Total timeout in seconds for one remote HTTP request.
    """

    storage_backend: str = BACKEND_LOCAL
    remote_url: str | None = None
    remote_key: str | None = None
    access_token: str | None = None
    namespace: str = DEFAULT_NAMESPACE
    data_path: str | None = None
    error_ttl: float = DEFAULT_ERROR_TTL
    http_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.error_ttl <= 0:
            raise ConfigError(f"error_ttl must be positive, got {self.error_ttl}")
        if self.http_timeout <= 0:
            raise ConfigError(f"http_timeout must be positive, got {self.http_timeout}")
        if not self.namespace.strip():
            raise ConfigError("namespace must be non-empty")

    @property
    def remote_configured(self) -> bool:
        """Whether both remote credentials are present."""
        return bool(self.remote_url and self.remote_url.strip() and self.remote_key and self.remote_key.strip())

    def resolve_backend(self, logger: logging.Logger | None = None) -> Backend:
        """Resolve the storage backend once.

        Falls back to :class:`LocalBackend` with a warning when the remote
        backend is selected without credentials.
        """
        log = logger or _logger
        local = LocalBackend(namespace=self.namespace, data_path=self.data_path)
        if _normalize_backend(self.storage_backend) != BACKEND_REMOTE:
            return local
        if not self.remote_configured:
            log.warning(
                "Remote storage backend selected but credentials not configured; "
                "falling back to local storage. Set GYMSYNC_REMOTE_URL and GYMSYNC_REMOTE_KEY."
            )
            return local
        assert self.remote_url is not None and self.remote_key is not None  # noqa: S101
        return RemoteBackend(
            url=self.remote_url.strip().rstrip("/"),
            key=self.remote_key.strip(),
            access_token=self.access_token,
            timeout=self.http_timeout,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads the ``GYMSYNC_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackerConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "GYMSYNC_REMOTE_URL": "remote_url",
            "GYMSYNC_REMOTE_KEY": "remote_key",
            "GYMSYNC_ACCESS_TOKEN": "access_token",
            "GYMSYNC_NAMESPACE": "namespace",
            "GYMSYNC_DATA_PATH": "data_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val

        config_kwargs["storage_backend"] = _normalize_backend(env.get("GYMSYNC_STORAGE_BACKEND"))

        ttl_env = env.get("GYMSYNC_ERROR_TTL")
        if ttl_env is not None and "error_ttl" not in overrides:
            config_kwargs["error_ttl"] = _env_float(ttl_env, "GYMSYNC_ERROR_TTL")

        timeout_env = env.get("GYMSYNC_HTTP_TIMEOUT")
        if timeout_env is not None and "http_timeout" not in overrides:
            config_kwargs["http_timeout"] = _env_float(timeout_env, "GYMSYNC_HTTP_TIMEOUT")

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
