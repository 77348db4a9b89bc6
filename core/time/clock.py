"""
RBO Core Time — Clock
=======================
Posting timestamps, "due in N days" and "pending for N hours" all
depend on the current time. Every engine that needs it takes a Clock
at construction; nothing reads the wall clock on its own.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now_utc(self) -> datetime:
        """Current time, timezone-aware, in UTC."""
        ...  # pragma: no cover


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Stopped clock for tests and replays of a past sync pass.

        clock = FixedClock(datetime(2026, 2, 19, tzinfo=timezone.utc))
        clock.advance(86400)   # one day later
    """

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._at = at.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._at

    def advance(self, seconds: float) -> None:
        self._at += timedelta(seconds=seconds)
