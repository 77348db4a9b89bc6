"""
Tests for core.store and core.time — key-value store, collection
reads, clock and the date helpers used on stored records.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from core.store import InMemoryKeyValueStore, read_collection
from core.time import (
    FixedClock,
    SystemClock,
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

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)


# ── Key-Value Store ──────────────────────────────────────────

class TestInMemoryKeyValueStore:
    def test_missing_key_returns_default(self):
        store = InMemoryKeyValueStore()
        assert store.get("expenses") is None
        assert store.get("expenses", []) == []

    def test_values_are_copied_on_write(self):
        store = InMemoryKeyValueStore()
        rows = [{"id": "E1"}]
        store.set("expenses", rows)
        rows[0]["id"] = "changed"
        assert store.get("expenses") == [{"id": "E1"}]

    def test_values_are_copied_on_read(self):
        store = InMemoryKeyValueStore({"expenses": [{"id": "E1"}]})
        rows = store.get("expenses")
        rows.append({"id": "E2"})
        assert len(store.get("expenses")) == 1

    def test_keys_and_snapshot(self):
        store = InMemoryKeyValueStore({"b": [], "a": [1]})
        assert store.keys() == ["a", "b"]
        assert store.snapshot() == {"a": [1], "b": []}


class TestReadCollection:
    def test_missing_collection_is_empty(self):
        assert read_collection(InMemoryKeyValueStore(), "checks") == []

    def test_non_list_value_is_empty(self):
        store = InMemoryKeyValueStore({"checks": {"id": "C1"}})
        assert read_collection(store, "checks") == []

    def test_non_dict_rows_are_dropped(self):
        store = InMemoryKeyValueStore({"checks": [{"id": "C1"}, "junk", 7, None]})
        assert read_collection(store, "checks") == [{"id": "C1"}]


# ── Clock ────────────────────────────────────────────────────

class TestClocks:
    def test_system_clock_is_utc(self):
        assert SystemClock().now_utc().tzinfo == timezone.utc

    def test_fixed_clock_rejects_naive(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2026, 1, 1))

    def test_fixed_clock_advance(self):
        clock = FixedClock(NOW)
        clock.advance(3600)
        assert clock.now_utc() == NOW + timedelta(hours=1)


# ── Record Dates ─────────────────────────────────────────────

class TestParseRecordDate:
    def test_plain_date_string(self):
        assert parse_record_date("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_iso_timestamp_with_z(self):
        parsed = parse_record_date("2026-03-01T09:30:00.000Z")
        assert parsed == datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_record_date("2026-03-01T12:00:00+03:00")
        assert parsed == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        assert parse_record_date(1767225600000) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_date_object(self):
        assert parse_record_date(date(2026, 1, 5)) == datetime(2026, 1, 5, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date", True, [], {}])
    def test_unparseable_is_none(self, value):
        assert parse_record_date(value) is None


class TestTemporalHelpers:
    def test_to_date_string(self):
        assert to_date_string(NOW) == "2026-02-19"

    def test_to_timestamp_string(self):
        assert to_timestamp_string(NOW) == "2026-02-19T12:00:00.000Z"

    def test_hours_between(self):
        assert hours_between(NOW - timedelta(hours=30), NOW) == 30

    def test_days_until_counts_calendar_days(self):
        late_tonight = datetime(2026, 2, 19, 23, 59, tzinfo=timezone.utc)
        assert days_until(datetime(2026, 2, 20, 0, 1, tzinfo=timezone.utc), late_tonight) == 1
        assert days_until(datetime(2026, 2, 17, tzinfo=timezone.utc), NOW) == -2

    def test_shift_month_crosses_years(self):
        assert shift_month((2026, 2), -3) == (2025, 11)
        assert shift_month((2025, 12), 1) == (2026, 1)
        assert month_key(NOW) == (2026, 2)

    def test_day_window(self):
        window = day_window(NOW)
        assert window.contains(datetime(2026, 2, 19, 0, 0, tzinfo=timezone.utc))
        assert not window.contains(datetime(2026, 2, 20, 0, 0, tzinfo=timezone.utc))

    def test_time_window_rejects_inverted_bounds(self):
        with pytest.raises(ValueError, match="must be <="):
            TimeWindow(start=NOW, end=NOW - timedelta(seconds=1))
