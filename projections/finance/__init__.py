"""
RBO Projections — Finance Read Model
=====================================
Read-only view over the unified ledger and the source collections for
report consumers: entry listings, period summaries, category
breakdowns, running balance and monthly trends.

AccountBalanceProjection is the one writer here: it stores the current
balance under "account_balance" ({currentBalance, lastUpdated}) for
screens that read the figure without scanning the ledger.

Sums use Decimal; to_dict() renders floats for the report layer.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from core.ledger import LedgerStore
from core.primitives.ledger import LedgerDirection, LedgerEntry
from core.primitives.source import get_kind_spec, parse_source_kind
from core.store import ACCOUNT_BALANCE, KeyValueStore, read_collection
from core.time import Clock, month_key, parse_record_date, shift_month

logger = logging.getLogger("rbo.projections")


@dataclass
class CategoryTotals:
    income: Decimal = Decimal(0)
    expense: Decimal = Decimal(0)

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


@dataclass
class CashFlowSummary:
    start: datetime
    end: datetime
    opening_balance: Decimal = Decimal(0)
    total_income: Decimal = Decimal(0)
    total_expense: Decimal = Decimal(0)
    entry_count: int = 0
    by_category: Dict[str, CategoryTotals] = field(default_factory=dict)

    @property
    def net_flow(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def closing_balance(self) -> Decimal:
        return self.opening_balance + self.net_flow

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "opening_balance": float(self.opening_balance),
            "total_income": float(self.total_income),
            "total_expense": float(self.total_expense),
            "net_flow": float(self.net_flow),
            "closing_balance": float(self.closing_balance),
            "entry_count": self.entry_count,
            "by_category": {
                name: {"income": float(t.income), "expense": float(t.expense)}
                for name, t in sorted(self.by_category.items())
            },
        }


@dataclass(frozen=True)
class MonthlyTrend:
    year: int
    month: int
    income: Decimal
    expense: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


def _amount(entry: LedgerEntry) -> Decimal:
    return Decimal(str(entry.amount))


class LedgerReadModel:
    """Report Aggregator contract. Never writes."""

    projection_name = "ledger_read_model"

    def __init__(self, store: KeyValueStore, ledger: LedgerStore) -> None:
        self._store = store
        self._ledger = ledger

    # ── contract ──────────────────────────────────────────────

    def get_ledger_entries(self) -> List[LedgerEntry]:
        return self._ledger.entries()

    def get_ledger_entries_by_date_range(self, start: datetime, end: datetime) -> List[LedgerEntry]:
        return self._ledger.by_date_range(start, end)

    def get_source_records(self, kind) -> List[Dict[str, Any]]:
        return read_collection(self._store, get_kind_spec(parse_source_kind(kind)).store_key)

    # ── aggregates ────────────────────────────────────────────

    def summary(self, start: datetime, end: datetime) -> CashFlowSummary:
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        result = CashFlowSummary(start=start, end=end)
        for entry in self._ledger.entries():
            when = parse_record_date(entry.date)
            if when is None or when > end:
                continue
            if when < start:
                result.opening_balance += _signed(entry)
                continue
            totals = result.by_category.setdefault(entry.category.value, CategoryTotals())
            if entry.direction == LedgerDirection.INCOME:
                result.total_income += _amount(entry)
                totals.income += _amount(entry)
            else:
                result.total_expense += _amount(entry)
                totals.expense += _amount(entry)
            result.entry_count += 1
        return result

    def current_balance(self) -> Decimal:
        return sum((_signed(e) for e in self._ledger.entries()), Decimal(0))

    def monthly_trends(self, months: int, now: datetime) -> List[MonthlyTrend]:
        """The last `months` calendar months up to and including now's month, oldest first."""
        if months < 1:
            raise ValueError(f"months must be >= 1, got {months}.")
        current = month_key(now)
        keys = [shift_month(current, -offset) for offset in range(months - 1, -1, -1)]
        buckets: Dict[Tuple[int, int], CategoryTotals] = defaultdict(CategoryTotals)
        for entry in self._ledger.entries():
            when = parse_record_date(entry.date)
            if when is None:
                continue
            bucket = buckets[month_key(when)]
            if entry.direction == LedgerDirection.INCOME:
                bucket.income += _amount(entry)
            else:
                bucket.expense += _amount(entry)
        return [
            MonthlyTrend(year=y, month=m, income=buckets[(y, m)].income, expense=buckets[(y, m)].expense)
            for y, m in keys
        ]


def _signed(entry: LedgerEntry) -> Decimal:
    amount = _amount(entry)
    return amount if entry.direction == LedgerDirection.INCOME else -amount


class AccountBalanceProjection:
    projection_name = "account_balance"

    def __init__(self, store: KeyValueStore, read_model: LedgerReadModel, clock: Clock) -> None:
        self._store = store
        self._read_model = read_model
        self._clock = clock

    def refresh(self) -> float:
        """Write the ledger's current balance. Store failures propagate."""
        balance = float(self._read_model.current_balance())
        self._store.set(ACCOUNT_BALANCE, {
            "currentBalance": balance,
            "lastUpdated": self._clock.now_utc().isoformat(),
        })
        logger.debug(f"account balance: {balance}")
        return balance
