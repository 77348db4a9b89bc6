"""
RBO Source Primitive — Business Record Kinds
==============================================
Every financial source record lives in its own collection and moves
through a kind-specific status set. A record is "realized" when its
status says the money actually moved; only realized records post to
the ledger. Terminal statuses never have a ledger effect.

Installments are the one kind that post per payment: each entry of
paymentHistory is its own realized event.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from core.primitives.ledger import LedgerDirection, PaymentChannel
from core.store import keys


# ══════════════════════════════════════════════════════════════
# SOURCE KINDS
# ══════════════════════════════════════════════════════════════

class SourceKind(Enum):
    """Also used verbatim as the ledger referenceType."""
    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"
    EXPENSE = "expense"
    PAYROLL = "payroll"
    RETURN = "return"
    CHECK = "check"
    INSTALLMENT = "installment"


@dataclass(frozen=True)
class SourceKindSpec:
    """Where a kind lives and how its status and amount are read."""

    kind: SourceKind
    store_key: str
    direction: LedgerDirection
    amount_field: str
    date_fields: Tuple[str, ...]
    status_field: str = "status"
    realized_statuses: FrozenSet[str] = frozenset()
    terminal_statuses: FrozenSet[str] = frozenset()
    paid_flag: Optional[str] = None
    per_payment: bool = False
    default_channel: PaymentChannel = PaymentChannel.CASH

    def status_of(self, record: Mapping[str, Any]) -> Optional[str]:
        value = record.get(self.status_field)
        return value if isinstance(value, str) else None

    def is_terminal(self, record: Mapping[str, Any]) -> bool:
        return self.status_of(record) in self.terminal_statuses

    def is_realized(self, record: Mapping[str, Any]) -> bool:
        if self.is_terminal(record):
            return False
        if self.paid_flag is not None and record.get(self.paid_flag) is True:
            return True
        return self.status_of(record) in self.realized_statuses


SOURCE_KINDS: Dict[SourceKind, SourceKindSpec] = {
    SourceKind.SALES_INVOICE: SourceKindSpec(
        kind=SourceKind.SALES_INVOICE,
        store_key=keys.SALES_INVOICES,
        direction=LedgerDirection.INCOME,
        amount_field="total",
        date_fields=("date", "createdAt"),
        status_field="paymentStatus",
        realized_statuses=frozenset({"paid"}),
        terminal_statuses=frozenset({"cancelled"}),
        default_channel=PaymentChannel.CREDIT,
    ),
    SourceKind.PURCHASE_INVOICE: SourceKindSpec(
        kind=SourceKind.PURCHASE_INVOICE,
        store_key=keys.PURCHASE_INVOICES,
        direction=LedgerDirection.EXPENSE,
        amount_field="total",
        date_fields=("date", "createdAt"),
        realized_statuses=frozenset({"paid"}),
        terminal_statuses=frozenset({"cancelled"}),
    ),
    SourceKind.EXPENSE: SourceKindSpec(
        kind=SourceKind.EXPENSE,
        store_key=keys.EXPENSES,
        direction=LedgerDirection.EXPENSE,
        amount_field="amount",
        date_fields=("date", "createdAt"),
        realized_statuses=frozenset({"paid"}),
    ),
    SourceKind.PAYROLL: SourceKindSpec(
        kind=SourceKind.PAYROLL,
        store_key=keys.PAYROLL_RECORDS,
        direction=LedgerDirection.EXPENSE,
        amount_field="netSalary",
        date_fields=("paidDate", "date", "createdAt"),
        realized_statuses=frozenset({"paid"}),
        paid_flag="isPaid",
        default_channel=PaymentChannel.BANK,
    ),
    SourceKind.RETURN: SourceKindSpec(
        kind=SourceKind.RETURN,
        store_key=keys.RETURNS,
        direction=LedgerDirection.EXPENSE,
        amount_field="totalAmount",
        date_fields=("processedDate", "date", "createdAt"),
        realized_statuses=frozenset({"processed"}),
        terminal_statuses=frozenset({"rejected"}),
    ),
    SourceKind.CHECK: SourceKindSpec(
        kind=SourceKind.CHECK,
        store_key=keys.CHECKS,
        direction=LedgerDirection.INCOME,
        amount_field="amount",
        date_fields=("cashedDate", "dueDate", "createdAt"),
        realized_statuses=frozenset({"cashed"}),
        terminal_statuses=frozenset({"bounced", "returned"}),
        default_channel=PaymentChannel.CHECK,
    ),
    SourceKind.INSTALLMENT: SourceKindSpec(
        kind=SourceKind.INSTALLMENT,
        store_key=keys.INSTALLMENTS,
        direction=LedgerDirection.INCOME,
        amount_field="amount",
        date_fields=("date",),
        realized_statuses=frozenset({"active", "completed", "overdue"}),
        terminal_statuses=frozenset({"cancelled"}),
        per_payment=True,
    ),
}


def get_kind_spec(kind: SourceKind) -> SourceKindSpec:
    return SOURCE_KINDS[kind]


def parse_source_kind(value: Any) -> SourceKind:
    """Accept a SourceKind or its string value. Raises ValueError otherwise."""
    if isinstance(value, SourceKind):
        return value
    return SourceKind(value)


def record_id(record: Mapping[str, Any]) -> Optional[str]:
    """Stored ids are strings in practice but occasionally numbers."""
    value = record.get("id")
    if value is None or value == "" or isinstance(value, bool):
        return None
    return str(value)


def iter_payments(installment: Mapping[str, Any]) -> List[Tuple[str, Dict[str, Any]]]:
    """
    (reference_id, payment) for each entry of an installment's paymentHistory.

    Payments without an id are keyed by what they record:
    "<installment id>@<date>:<amount>:<method>". Removing or reordering
    other payments leaves the key unchanged. Identical id-less payments
    get "#2", "#3", ... on the repeats.
    """
    history = installment.get("paymentHistory")
    if not isinstance(history, list):
        return []
    owner_id = record_id(installment) or "?"
    result: List[Tuple[str, Dict[str, Any]]] = []
    seen: Dict[str, int] = {}
    for payment in history:
        if not isinstance(payment, dict):
            continue
        payment_id = record_id(payment)
        if payment_id is None:
            content_key = _payment_content_key(owner_id, payment)
            seen[content_key] = seen.get(content_key, 0) + 1
            count = seen[content_key]
            payment_id = content_key if count == 1 else f"{content_key}#{count}"
        result.append((payment_id, payment))
    return result


def _payment_content_key(owner_id: str, payment: Mapping[str, Any]) -> str:
    date = payment.get("date") or payment.get("paymentDate") or ""
    amount = payment.get("amount")
    if isinstance(amount, float) and amount.is_integer():
        amount = int(amount)
    method = payment.get("paymentMethod") or "cash"
    return f"{owner_id}@{str(date)[:10]}:{amount}:{method}"
