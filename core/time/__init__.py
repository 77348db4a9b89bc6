"""
RBO Core Time — Public API
============================
Explicit clock protocol and temporal helpers.
"""

from core.time.clock import Clock, FixedClock, SystemClock
from core.time.temporal import (
    TimeWindow,
    day_window,
    days_until,
    hours_between,
    month_key,
    parse_record_date,
    shift_month,
    to_date_string,
    to_timestamp_string,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "TimeWindow",
    "day_window",
    "days_until",
    "hours_between",
    "month_key",
    "parse_record_date",
    "shift_month",
    "to_date_string",
    "to_timestamp_string",
]
