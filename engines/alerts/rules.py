"""
RBO Alert Scanner — Alert Rules
=================================
Each rule reads a ScanState snapshot and returns zero or more alerts.
Rules are read-only, take time explicitly, and tolerate malformed
rows by ignoring them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from core.config import AlertRules
from core.primitives.alert import Alert, Severity
from core.primitives.source import SOURCE_KINDS, SourceKind, record_id
from core.store import keys
from core.time import (
    day_window,
    days_until,
    hours_between,
    month_key,
    parse_record_date,
    shift_month,
)
from engines.inventory.policies import min_stock_of, stock_of
from engines.posting.policies import parse_amount


# ══════════════════════════════════════════════════════════════
# SCAN STATE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ScanState:
    """Collections read once per scan. Rules never see the store."""

    collections: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    low_stock: List[Dict[str, Any]] = field(default_factory=list)
    out_of_stock: List[Dict[str, Any]] = field(default_factory=list)

    def rows(self, key: str) -> List[Dict[str, Any]]:
        return self.collections.get(key, [])


def _first_date(record: Mapping[str, Any], *fields: str) -> Optional[datetime]:
    for name in fields:
        parsed = parse_record_date(record.get(name))
        if parsed is not None:
            return parsed
    return None


def _label(record: Mapping[str, Any], *fields: str) -> str:
    for name in fields:
        value = record.get(name)
        if value not in (None, ""):
            return str(value)
    return record_id(record) or "?"


# ══════════════════════════════════════════════════════════════
# RULE BASE
# ══════════════════════════════════════════════════════════════

class AlertRule(ABC):
    """
    Base class for alert rules.

    Subclasses implement `evaluate()`; the scanner stamps created_at,
    deduplicates by id and sorts.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        ...


# ══════════════════════════════════════════════════════════════
# INVENTORY
# ══════════════════════════════════════════════════════════════

class OutOfStockRule(AlertRule):
    @property
    def name(self) -> str:
        return "out_of_stock"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        alerts = []
        for product in state.out_of_stock:
            pid = record_id(product)
            if pid is None:
                continue
            alerts.append(Alert(
                id=f"out_of_stock:{pid}",
                kind="out_of_stock",
                severity=Severity.HIGH,
                message=f"{_label(product, 'name')} is out of stock.",
                reference_ids=(pid,),
            ))
        return alerts


class LowStockRule(AlertRule):
    @property
    def name(self) -> str:
        return "low_stock"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        alerts = []
        for product in state.low_stock:
            pid = record_id(product)
            if pid is None:
                continue
            alerts.append(Alert(
                id=f"low_stock:{pid}",
                kind="low_stock",
                severity=Severity.MEDIUM,
                message=(
                    f"{_label(product, 'name')} is low on stock: "
                    f"{stock_of(product)} left, reorder level {min_stock_of(product)}."
                ),
                reference_ids=(pid,),
            ))
        return alerts


# ══════════════════════════════════════════════════════════════
# CHECKS AND INSTALLMENTS
# ══════════════════════════════════════════════════════════════

class CheckDueRule(AlertRule):
    """Pending checks due within check_due_days, or already past due."""

    @property
    def name(self) -> str:
        return "check_due"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        alerts = []
        for check in state.rows(keys.CHECKS):
            cid = record_id(check)
            due = parse_record_date(check.get("dueDate"))
            if cid is None or due is None or check.get("status") != "pending":
                continue
            days = days_until(due, now)
            label = f"Check {_label(check, 'checkNumber')} from {_label(check, 'customerName')}"
            if days < 0:
                alerts.append(Alert(
                    id=f"check_overdue:{cid}", kind="check_overdue", severity=Severity.HIGH,
                    message=f"{label} is {-days} day(s) past due.", reference_ids=(cid,),
                ))
            elif days <= rules.check_due_days:
                alerts.append(Alert(
                    id=f"check_due:{cid}", kind="check_due",
                    severity=Severity.HIGH if days == 0 else Severity.MEDIUM,
                    message=f"{label} is due in {days} day(s).", reference_ids=(cid,),
                ))
        return alerts


_OPEN_INSTALLMENT = frozenset({"active", "overdue"})


def _installment_is_overdue(installment: Mapping[str, Any], now: datetime) -> bool:
    if installment.get("status") == "overdue":
        return True
    due = parse_record_date(installment.get("dueDate"))
    remaining = parse_amount(installment.get("remainingAmount"))
    return (
        installment.get("status") == "active"
        and due is not None
        and days_until(due, now) < 0
        and (remaining is None or remaining > 0)
    )


class InstallmentDueRule(AlertRule):
    """Open installments due within installment_due_days, or overdue."""

    @property
    def name(self) -> str:
        return "installment_due"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        alerts = []
        for installment in state.rows(keys.INSTALLMENTS):
            iid = record_id(installment)
            if iid is None or installment.get("status") not in _OPEN_INSTALLMENT:
                continue
            label = f"Installment {_label(installment, 'installmentNumber')} of {_label(installment, 'customerName')}"
            if _installment_is_overdue(installment, now):
                alerts.append(Alert(
                    id=f"installment_overdue:{iid}", kind="installment_overdue",
                    severity=Severity.HIGH, message=f"{label} is overdue.", reference_ids=(iid,),
                ))
                continue
            due = parse_record_date(installment.get("dueDate"))
            if due is None:
                continue
            days = days_until(due, now)
            if 0 <= days <= rules.installment_due_days:
                alerts.append(Alert(
                    id=f"installment_due:{iid}", kind="installment_due",
                    severity=Severity.HIGH if days <= 1 else Severity.MEDIUM,
                    message=f"{label} is due in {days} day(s).", reference_ids=(iid,),
                ))
        return alerts


class CustomerOverdueInstallmentsRule(AlertRule):
    @property
    def name(self) -> str:
        return "customer_overdue_installments"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        overdue: Dict[str, List[str]] = defaultdict(list)
        names: Dict[str, str] = {}
        for installment in state.rows(keys.INSTALLMENTS):
            iid = record_id(installment)
            if iid is None or not _installment_is_overdue(installment, now):
                continue
            owner = _label(installment, "customerId", "customerName")
            overdue[owner].append(iid)
            names.setdefault(owner, _label(installment, "customerName", "customerId"))
        return [
            Alert(
                id=f"customer_overdue_installments:{owner}",
                kind="customer_overdue_installments",
                severity=Severity.HIGH,
                message=f"{names[owner]} has {len(ids)} overdue installment(s).",
                reference_ids=tuple(sorted(ids)),
            )
            for owner, ids in overdue.items()
        ]


# ══════════════════════════════════════════════════════════════
# PENDING RECORDS AND RETURNS
# ══════════════════════════════════════════════════════════════

class StalePendingRule(AlertRule):
    """Sales invoices and returns still pending after pending_hours."""

    @property
    def name(self) -> str:
        return "stale_pending"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        alerts = []
        sales = SOURCE_KINDS[SourceKind.SALES_INVOICE]
        for invoice in state.rows(keys.SALES_INVOICES):
            iid = record_id(invoice)
            if iid is None or sales.is_realized(invoice) or sales.is_terminal(invoice):
                continue
            created = _first_date(invoice, "createdAt", "date")
            if created is not None and hours_between(created, now) > rules.pending_hours:
                alerts.append(Alert(
                    id=f"stale_pending_invoice:{iid}", kind="stale_pending_invoice",
                    severity=Severity.MEDIUM,
                    message=(
                        f"Invoice {_label(invoice, 'invoiceNumber')} unpaid for more than "
                        f"{rules.pending_hours} hours."
                    ),
                    reference_ids=(iid,),
                ))
        for ret in state.rows(keys.RETURNS):
            rid = record_id(ret)
            if rid is None or ret.get("status") != "pending":
                continue
            created = _first_date(ret, "createdAt", "date")
            if created is not None and hours_between(created, now) > rules.pending_hours:
                alerts.append(Alert(
                    id=f"stale_pending_return:{rid}", kind="stale_pending_return",
                    severity=Severity.MEDIUM,
                    message=(
                        f"Return {_label(ret, 'returnNumber')} pending for more than "
                        f"{rules.pending_hours} hours."
                    ),
                    reference_ids=(rid,),
                ))
        return alerts


def _live_returns(state: ScanState) -> List[Dict[str, Any]]:
    spec = SOURCE_KINDS[SourceKind.RETURN]
    return [r for r in state.rows(keys.RETURNS) if record_id(r) and not spec.is_terminal(r)]


class DailyReturnVolumeRule(AlertRule):
    @property
    def name(self) -> str:
        return "daily_return_volume"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        today = day_window(now)
        todays = []
        for ret in _live_returns(state):
            when = _first_date(ret, "createdAt", "date")
            if when is not None and today.contains(when):
                todays.append(ret)
        if len(todays) <= rules.daily_return_threshold:
            return []
        day = today.start.strftime("%Y-%m-%d")
        return [Alert(
            id=f"daily_return_volume:{day}",
            kind="daily_return_volume",
            severity=Severity.HIGH,
            message=f"{len(todays)} returns today, above the limit of {rules.daily_return_threshold}.",
            reference_ids=tuple(sorted(record_id(r) for r in todays)),
        )]


class ProductReturnRule(AlertRule):
    @property
    def name(self) -> str:
        return "product_return_volume"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        quantities: Counter = Counter()
        names: Dict[str, str] = {}
        for ret in _live_returns(state):
            for item in ret.get("items") or []:
                if not isinstance(item, dict) or not item.get("productId"):
                    continue
                pid = str(item["productId"])
                quantities[pid] += parse_amount(item.get("quantity")) or 0
                names.setdefault(pid, _label(item, "productName", "productId"))
        return [
            Alert(
                id=f"product_return_volume:{pid}",
                kind="product_return_volume",
                severity=Severity.MEDIUM,
                message=f"{names[pid]} returned {qty:g} times, above the limit of {rules.product_return_threshold}.",
                reference_ids=(pid,),
            )
            for pid, qty in quantities.items()
            if qty > rules.product_return_threshold
        ]


class CustomerReturnRule(AlertRule):
    @property
    def name(self) -> str:
        return "customer_return_volume"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        by_customer: Dict[str, List[str]] = defaultdict(list)
        names: Dict[str, str] = {}
        for ret in _live_returns(state):
            owner = _label(ret, "customerId", "customerName")
            by_customer[owner].append(record_id(ret))
            names.setdefault(owner, _label(ret, "customerName", "customerId"))
        return [
            Alert(
                id=f"customer_return_volume:{owner}",
                kind="customer_return_volume",
                severity=Severity.MEDIUM,
                message=f"{names[owner]} has {len(ids)} returns, above the limit of {rules.customer_return_threshold}.",
                reference_ids=tuple(sorted(ids)),
            )
            for owner, ids in by_customer.items()
            if len(ids) > rules.customer_return_threshold
        ]


# ══════════════════════════════════════════════════════════════
# EXPENSES AND SUPPLIERS
# ══════════════════════════════════════════════════════════════

class ExpenseSpikeRule(AlertRule):
    """
    This month's expense total against the average of the previous
    expense_history_months months that had any expenses.
    """

    @property
    def name(self) -> str:
        return "expense_spike"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        totals: Dict[tuple, Decimal] = defaultdict(Decimal)
        for expense in state.rows(keys.EXPENSES):
            when = parse_record_date(expense.get("date"))
            amount = parse_amount(expense.get("amount"))
            if when is None or amount is None or amount <= 0:
                continue
            totals[month_key(when)] += Decimal(str(amount))

        current = month_key(now)
        history = [
            totals[key]
            for key in (shift_month(current, -n) for n in range(1, rules.expense_history_months + 1))
            if totals.get(key)
        ]
        if not history:
            return []
        average = sum(history, Decimal(0)) / len(history)
        this_month = totals.get(current, Decimal(0))
        if this_month <= average * Decimal(str(rules.expense_spike_ratio)):
            return []
        return [Alert(
            id=f"expense_spike:{current[0]:04d}-{current[1]:02d}",
            kind="expense_spike",
            severity=Severity.HIGH,
            message=(
                f"Expenses this month ({float(this_month):.2f}) exceed "
                f"{rules.expense_spike_ratio}x the monthly average ({float(average):.2f})."
            ),
        )]


class StaleExpenseRule(AlertRule):
    @property
    def name(self) -> str:
        return "stale_pending_expense"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        alerts = []
        for expense in state.rows(keys.EXPENSES):
            eid = record_id(expense)
            when = _first_date(expense, "date", "createdAt")
            if eid is None or when is None or expense.get("status") != "pending":
                continue
            if now - when > timedelta(days=rules.stale_expense_days):
                alerts.append(Alert(
                    id=f"stale_pending_expense:{eid}",
                    kind="stale_pending_expense",
                    severity=Severity.LOW,
                    message=(
                        f"Expense {_label(expense, 'description', 'category')} pending for more "
                        f"than {rules.stale_expense_days} days."
                    ),
                    reference_ids=(eid,),
                ))
        return alerts


class InactiveSupplierRule(AlertRule):
    """Suppliers with purchases, none of them within inactive_supplier_days."""

    @property
    def name(self) -> str:
        return "inactive_supplier"

    def evaluate(self, state: ScanState, rules: AlertRules, now: datetime) -> List[Alert]:
        last_by_id: Dict[str, datetime] = {}
        last_by_name: Dict[str, datetime] = {}
        for purchase in state.rows(keys.PURCHASE_INVOICES):
            when = _first_date(purchase, "date", "createdAt")
            if when is None:
                continue
            supplier_id = purchase.get("supplierId")
            if supplier_id not in (None, ""):
                key = str(supplier_id)
                last_by_id[key] = max(when, last_by_id.get(key, when))
            supplier_name = purchase.get("supplierName") or purchase.get("supplier")
            if supplier_name not in (None, ""):
                key = str(supplier_name)
                last_by_name[key] = max(when, last_by_name.get(key, when))
        alerts = []
        for supplier in state.rows(keys.SUPPLIERS):
            sid = record_id(supplier)
            if sid is None:
                continue
            candidates = [d for d in (last_by_id.get(sid), last_by_name.get(str(supplier.get("name")))) if d]
            if not candidates:
                continue
            idle = (now - max(candidates)).days
            if idle > rules.inactive_supplier_days:
                alerts.append(Alert(
                    id=f"inactive_supplier:{sid}",
                    kind="inactive_supplier",
                    severity=Severity.LOW,
                    message=f"No purchases from {_label(supplier, 'name')} for {idle} days.",
                    reference_ids=(sid,),
                ))
        return alerts


DEFAULT_RULES: List[AlertRule] = [
    OutOfStockRule(),
    LowStockRule(),
    CheckDueRule(),
    InstallmentDueRule(),
    CustomerOverdueInstallmentsRule(),
    StalePendingRule(),
    DailyReturnVolumeRule(),
    ProductReturnRule(),
    CustomerReturnRule(),
    ExpenseSpikeRule(),
    StaleExpenseRule(),
    InactiveSupplierRule(),
]
