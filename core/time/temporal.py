"""
RBO Core Time — Temporal Helpers
==================================
Pure functions over the loosely formatted dates stored on records
("2026-03-01", "2026-03-01T09:30:00.000Z", epoch milliseconds).
All functions take explicit datetime arguments — no hidden clock access.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Tuple


# ══════════════════════════════════════════════════════════════
# TIME WINDOW — Closed interval [start, end]
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TimeWindow:
    """
    A closed time interval [start, end].

    Invariant: start <= end (enforced at construction).
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"TimeWindow start ({self.start}) must be <= end ({self.end})."
            )

    def contains(self, dt: datetime) -> bool:
        """Check if datetime falls within window (inclusive)."""
        return self.start <= dt <= self.end

    def duration(self) -> timedelta:
        return self.end - self.start


# ══════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════

def parse_record_date(value: Any) -> Optional[datetime]:
    """
    Parse a stored date into an aware UTC datetime.

    Returns None for empty or unparseable values. Naive values are
    taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            try:
                dt = datetime.strptime(text[:10], "%Y-%m-%d")
            except ValueError:
                return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_date_string(dt: datetime) -> str:
    """Render the YYYY-MM-DD form used for ledger entry dates."""
    return dt.strftime("%Y-%m-%d")


def to_timestamp_string(dt: datetime) -> str:
    """Render an ISO-8601 UTC timestamp with millisecond precision."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ══════════════════════════════════════════════════════════════
# PURE TEMPORAL FUNCTIONS
# ══════════════════════════════════════════════════════════════

def hours_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 3600.0


def days_until(target: datetime, now: datetime) -> int:
    """Whole calendar days from now's date to target's date (negative when past)."""
    return (target.date() - now.date()).days


def month_key(dt: datetime) -> Tuple[int, int]:
    return (dt.year, dt.month)


def day_window(now: datetime) -> TimeWindow:
    """The UTC calendar day containing now."""
    start = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
    return TimeWindow(start=start, end=start + timedelta(days=1) - timedelta(microseconds=1))


def shift_month(key: Tuple[int, int], months: int) -> Tuple[int, int]:
    """Move a (year, month) key by a signed number of months."""
    index = key[0] * 12 + (key[1] - 1) + months
    return (index // 12, index % 12 + 1)
