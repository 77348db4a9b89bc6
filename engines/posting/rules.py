"""
RBO Posting Engine — Entry Builders
=====================================
One builder per source kind. A builder turns a realized record into
the ledger entries it causes (exactly one, except installments which
cause one per collected payment). Builders are pure: they raise
ValidationError for unusable records and never touch a store.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.ledger.errors import ValidationError
from core.primitives.ledger import (
    LedgerCategory,
    LedgerEntry,
    PaymentChannel,
    ReferenceKey,
)
from core.primitives.source import (
    SOURCE_KINDS,
    SourceKind,
    SourceKindSpec,
    iter_payments,
)
from core.time import to_date_string, to_timestamp_string
from engines.posting.categories import map_expense_category
from engines.posting.policies import (
    require_amount,
    resolve_date,
    require_id,
    require_line_items,
)

RETURNS_SUBCATEGORY = "returns"
CHECKS_SUBCATEGORY = "checks"
INSTALLMENTS_SUBCATEGORY = "installments"


def new_entry_id(now: datetime) -> str:
    return f"CF_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


def _text(record: Mapping[str, Any], *fields: str) -> str:
    for field in fields:
        value = record.get(field)
        if value not in (None, ""):
            return str(value)
    return ""


def _entry(
    spec: SourceKindSpec,
    reference_id: str,
    *,
    date: datetime,
    amount: float,
    category: LedgerCategory,
    description: str,
    now: datetime,
    subcategory: Optional[str] = None,
    channel: Optional[PaymentChannel] = None,
    notes: Optional[str] = None,
) -> LedgerEntry:
    return LedgerEntry(
        entry_id=new_entry_id(now),
        date=to_date_string(date),
        direction=spec.direction,
        category=category,
        amount=amount,
        description=" ".join(description.split()),
        subcategory=subcategory,
        reference=ReferenceKey(reference_id=reference_id, reference_type=spec.kind.value),
        payment_channel=channel or spec.default_channel,
        notes=notes,
        created_at=to_timestamp_string(now),
    )


def _common(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime):
    kind = spec.kind.value
    rid = require_id(record, kind)
    amount = require_amount(record, spec.amount_field, rid, kind)
    date = resolve_date(record, spec.date_fields, now)
    return rid, amount, date


# ══════════════════════════════════════════════════════════════
# BUILDERS
# ══════════════════════════════════════════════════════════════

def build_sales_invoice(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    rid, amount, date = _common(record, spec, now)
    number = _text(record, "invoiceNumber", "id")
    customer = _text(record, "customerName", "customer")
    channel = PaymentChannel.CASH if record.get("paymentMethod") == "cash" else PaymentChannel.CREDIT
    return [_entry(
        spec, rid, date=date, amount=amount, category=LedgerCategory.SALES,
        description=f"Sales invoice {number} {customer}", channel=channel, now=now,
    )]


def build_purchase_invoice(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    rid, amount, date = _common(record, spec, now)
    number = _text(record, "invoiceNumber", "id")
    supplier = _text(record, "supplierName", "supplier")
    return [_entry(
        spec, rid, date=date, amount=amount, category=LedgerCategory.PURCHASES,
        description=f"Purchase invoice {number} {supplier}", now=now,
    )]


def build_expense(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    rid, amount, date = _common(record, spec, now)
    raw_category = record.get("category")
    description = _text(record, "description", "title") or f"Expense {raw_category or ''}"
    return [_entry(
        spec, rid, date=date, amount=amount,
        category=map_expense_category(raw_category),
        subcategory=raw_category if isinstance(raw_category, str) and raw_category else None,
        description=description, notes=record.get("notes") or None, now=now,
    )]


def build_payroll(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    rid, amount, date = _common(record, spec, now)
    employee = _text(record, "employeeName")
    period = ""
    if record.get("month") and record.get("year"):
        period = f"{record['month']}/{record['year']}"
    return [_entry(
        spec, rid, date=date, amount=amount, category=LedgerCategory.PAYROLL,
        subcategory=employee or None,
        description=f"Salary {employee} {period}", now=now,
    )]


def build_return(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    rid, amount, date = _common(record, spec, now)
    require_line_items(record, rid, spec.kind.value)
    number = _text(record, "returnNumber", "id")
    customer = _text(record, "customerName")
    original = _text(record, "originalInvoiceNumber", "originalInvoiceId")
    return [_entry(
        spec, rid, date=date, amount=amount, category=LedgerCategory.SALES,
        subcategory=RETURNS_SUBCATEGORY,
        description=f"Return {number} {customer}",
        notes=f"Original invoice {original}" if original else None, now=now,
    )]


def build_check(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    rid, amount, date = _common(record, spec, now)
    number = _text(record, "checkNumber", "id")
    drawer = _text(record, "customerName", "supplierName")
    bank = _text(record, "bankName")
    return [_entry(
        spec, rid, date=date, amount=amount, category=LedgerCategory.SALES,
        subcategory=CHECKS_SUBCATEGORY,
        description=f"Check {number} cashed {drawer}",
        notes=f"Bank {bank}" if bank else None, now=now,
    )]


def build_installment(record: Mapping[str, Any], spec: SourceKindSpec, now: datetime) -> List[LedgerEntry]:
    """One entry per payment in paymentHistory, keyed by the payment id."""
    kind = spec.kind.value
    rid = require_id(record, kind)
    number = _text(record, "installmentNumber", "id")
    customer = _text(record, "customerName")
    entries = []
    for payment_id, payment in iter_payments(record):
        amount = require_amount(payment, spec.amount_field, rid, kind)
        date = resolve_date(payment, spec.date_fields, now)
        try:
            channel = PaymentChannel(payment.get("paymentMethod", "cash"))
        except ValueError:
            channel = PaymentChannel.CASH
        entries.append(_entry(
            spec, payment_id, date=date, amount=amount, category=LedgerCategory.SALES,
            subcategory=INSTALLMENTS_SUBCATEGORY,
            description=f"Installment payment {number} {customer}",
            channel=channel, notes=f"Installment {rid}", now=now,
        ))
    return entries


Builder = Callable[[Mapping[str, Any], SourceKindSpec, datetime], List[LedgerEntry]]

BUILDERS: Dict[SourceKind, Builder] = {
    SourceKind.SALES_INVOICE: build_sales_invoice,
    SourceKind.PURCHASE_INVOICE: build_purchase_invoice,
    SourceKind.EXPENSE: build_expense,
    SourceKind.PAYROLL: build_payroll,
    SourceKind.RETURN: build_return,
    SourceKind.CHECK: build_check,
    SourceKind.INSTALLMENT: build_installment,
}


def build_entries(record: Mapping[str, Any], kind: SourceKind, now: datetime) -> List[LedgerEntry]:
    """Entries a realized record causes. Raises ValidationError."""
    if not isinstance(record, Mapping):
        raise ValidationError(None, kind.value, "record", reason="malformed")
    return BUILDERS[kind](record, SOURCE_KINDS[kind], now)


def reference_keys_for(record: Mapping[str, Any], kind: SourceKind) -> List[ReferenceKey]:
    """
    Every reference key a record can own, whether or not it is posted.
    Empty when the record has no usable id.
    """
    spec = SOURCE_KINDS[kind]
    if spec.per_payment:
        return [
            ReferenceKey(reference_id=payment_id, reference_type=kind.value)
            for payment_id, _ in iter_payments(record)
        ]
    try:
        rid = require_id(record, kind.value)
    except ValidationError:
        return []
    return [ReferenceKey(reference_id=rid, reference_type=kind.value)]
