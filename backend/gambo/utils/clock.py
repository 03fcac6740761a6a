"""Clock abstraction so time-driven status progression can be tested deterministically."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from gambo.utils import ensure_utc, utcnow


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def now(self) -> datetime:
        return utcnow()


class FrozenClock:
    """Fixed clock for tests and replays; advance() moves it forward."""

    def __init__(self, at: datetime) -> None:
        self._at = ensure_utc(at)

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs) -> None:
        self._at = self._at + timedelta(**kwargs)
