"""Transient, self-expiring failure notifications for the UI."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from gymsync._constants import DEFAULT_ERROR_TTL

_logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with an asyncio-style ``call_later`` (an event loop, a test clock)."""

    def call_later(self, delay: float, callback: Callable[..., object], *args: Any) -> TimerHandle: ...


class AppError(BaseModel):
    """One reported failure."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: f"error-{uuid.uuid4().hex}")
    message: str
    details: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ErrorReporter:
    """Collect errors that remove themselves after ``ttl`` seconds.

    Each error has its own timer; clearing an error cancels its timer.
    Timers run on *scheduler*, or on the running event loop when none is
    given.
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_ERROR_TTL,
        scheduler: Scheduler | None = None,
        on_change: Callable[[tuple[AppError, ...]], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._ttl = ttl
        self._scheduler = scheduler
        self._on_change = on_change
        self._errors: dict[str, AppError] = {}
        self._timers: dict[str, TimerHandle] = {}
        self._logger = logger or _logger

    @property
    def errors(self) -> tuple[AppError, ...]:
        """Current errors, oldest first."""
        return tuple(self._errors.values())

    def _schedule(self, error_id: str) -> TimerHandle:
        scheduler: Scheduler = self._scheduler or asyncio.get_running_loop()
        return scheduler.call_later(self._ttl, self._expire, error_id)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.errors)

    def _expire(self, error_id: str) -> None:
        self._timers.pop(error_id, None)
        if self._errors.pop(error_id, None) is not None:
            self._notify()

    def add_error(self, message: str, details: str | None = None) -> AppError:
        """Record an error and schedule its removal."""
        error = AppError(message=message, details=details)
        self._errors[error.id] = error
        self._timers[error.id] = self._schedule(error.id)
        self._logger.debug("Reported error %s: %s", error.id, message)
        self._notify()
        return error

    def clear_error(self, error_id: str) -> None:
        timer = self._timers.pop(error_id, None)
        if timer is not None:
            timer.cancel()
        if self._errors.pop(error_id, None) is not None:
            self._notify()

    def clear_all_errors(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        had_errors = bool(self._errors)
        self._errors.clear()
        if had_errors:
            self._notify()
