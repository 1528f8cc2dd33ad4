from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest


@dataclass
class _Timer:
    when: float
    callback: Callable[..., object]
    args: tuple[Any, ...]
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Deterministic stand-in for ``loop.call_later``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_Timer] = []

    def call_later(self, delay: float, callback: Callable[..., object], *args: Any) -> _Timer:
        timer = _Timer(self.now + delay, callback, args)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [t for t in self._timers if not t.cancelled and t.when <= self.now]
        for timer in sorted(due, key=lambda t: t.when):
            timer.cancelled = True
            timer.callback(*timer.args)

    @property
    def active(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
