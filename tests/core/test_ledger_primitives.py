"""
Tests for core.primitives — ledger entries, reference keys, source
kinds and alerts.
"""

from datetime import datetime, timezone

import pytest

from core.primitives.alert import Alert, Severity
from core.primitives.ledger import (
    LedgerCategory,
    LedgerDirection,
    LedgerEntry,
    PaymentChannel,
    ReferenceKey,
)
from core.primitives.source import (
    SOURCE_KINDS,
    SourceKind,
    iter_payments,
    parse_source_kind,
    record_id,
)

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)


def _entry(**overrides):
    data = dict(
        entry_id="CF_1",
        date="2026-02-19",
        direction=LedgerDirection.EXPENSE,
        category=LedgerCategory.RENT,
        amount=500,
        description="Shop rent",
        subcategory="rent",
        reference=ReferenceKey("EXP_1", "expense"),
        created_at="2026-02-19T12:00:00.000Z",
    )
    data.update(overrides)
    return LedgerEntry(**data)


# ── Reference Key ────────────────────────────────────────────

class TestReferenceKey:
    def test_str(self):
        assert str(ReferenceKey("EXP_1", "expense")) == "expense:EXP_1"

    def test_manual_types(self):
        assert ReferenceKey("M1", "manual").is_manual
        assert ReferenceKey("A1", "adjustment").is_manual
        assert not ReferenceKey("EXP_1", "expense").is_manual

    def test_rejects_empty(self):
        with pytest.raises(ValueError, match="reference_id"):
            ReferenceKey("", "expense")

    def test_hashable_and_equal_by_value(self):
        assert {ReferenceKey("X", "check"): 1}[ReferenceKey("X", "check")] == 1


# ── Ledger Entry ─────────────────────────────────────────────

class TestLedgerEntry:
    def test_signed_amount(self):
        assert _entry().signed_amount == -500
        assert _entry(direction=LedgerDirection.INCOME).signed_amount == 500

    @pytest.mark.parametrize("amount", [-1, float("nan"), float("inf")])
    def test_rejects_bad_amount(self, amount):
        with pytest.raises(ValueError, match="finite and non-negative"):
            _entry(amount=amount)

    def test_rejects_non_numeric_amount(self):
        with pytest.raises(TypeError, match="amount"):
            _entry(amount="500")

    def test_to_dict_uses_stored_field_names(self):
        data = _entry().to_dict()
        assert data["id"] == "CF_1"
        assert data["type"] == "expense"
        assert data["category"] == "rent"
        assert data["referenceId"] == "EXP_1"
        assert data["referenceType"] == "expense"
        assert data["paymentMethod"] == "cash"
        assert data["createdBy"] == "system"
        assert "notes" not in data

    def test_from_dict_restores_entry(self):
        entry = _entry(notes="paid in cash", payment_channel=PaymentChannel.BANK)
        assert LedgerEntry.from_dict(entry.to_dict()) == entry

    def test_from_dict_without_reference_is_manual_row(self):
        row = {"id": "M1", "date": "2026-01-01", "type": "income", "amount": 10}
        entry = LedgerEntry.from_dict(row)
        assert entry.reference is None
        assert entry.category == LedgerCategory.OTHER

    def test_from_dict_rejects_unknown_direction(self):
        with pytest.raises(ValueError):
            LedgerEntry.from_dict({"id": "X", "date": "2026-01-01", "type": "transfer", "amount": 1})

    def test_posting_signature_ignores_identity(self):
        a = _entry(entry_id="CF_1", created_at="t1")
        b = _entry(entry_id="CF_2", created_at="t2")
        assert a.posting_signature() == b.posting_signature()


# ── Source Kinds ─────────────────────────────────────────────

class TestSourceKinds:
    def test_sales_invoice_realized_on_payment_status(self):
        spec = SOURCE_KINDS[SourceKind.SALES_INVOICE]
        assert spec.is_realized({"paymentStatus": "paid"})
        assert not spec.is_realized({"paymentStatus": "pending", "status": "paid"})

    def test_payroll_realized_by_flag_or_status(self):
        spec = SOURCE_KINDS[SourceKind.PAYROLL]
        assert spec.is_realized({"isPaid": True})
        assert spec.is_realized({"status": "paid"})
        assert not spec.is_realized({"isPaid": False, "status": "pending"})

    def test_terminal_status_is_never_realized(self):
        spec = SOURCE_KINDS[SourceKind.CHECK]
        assert spec.is_terminal({"status": "bounced"})
        assert not spec.is_realized({"status": "bounced"})
        assert spec.is_realized({"status": "cashed"})

    def test_parse_source_kind(self):
        assert parse_source_kind("return") is SourceKind.RETURN
        assert parse_source_kind(SourceKind.CHECK) is SourceKind.CHECK
        with pytest.raises(ValueError):
            parse_source_kind("refund")

    def test_record_id(self):
        assert record_id({"id": 42}) == "42"
        assert record_id({"id": ""}) is None
        assert record_id({}) is None

    def test_iter_payments_keys_missing_ids_by_content(self):
        installment = {
            "id": "INST_1",
            "paymentHistory": [
                {"id": "PAY_1", "amount": 100},
                {"amount": 50.0, "date": "2026-02-01T09:30:00"},
                "junk",
            ],
        }
        assert [pid for pid, _ in iter_payments(installment)] == [
            "PAY_1", "INST_1@2026-02-01:50:cash",
        ]

    def test_missing_id_key_survives_removal_of_an_earlier_payment(self):
        first = {"amount": 100, "date": "2026-01-15"}
        second = {"amount": 200, "date": "2026-02-15"}
        before = dict(iter_payments({"id": "INST_1", "paymentHistory": [first, second]}))
        after = dict(iter_payments({"id": "INST_1", "paymentHistory": [second]}))
        [(key, payment)] = after.items()
        assert before[key] is payment

    def test_identical_payments_without_ids_get_distinct_keys(self):
        payment = {"amount": 100, "date": "2026-01-15"}
        keys = [pid for pid, _ in iter_payments({"id": "INST_1", "paymentHistory": [payment, dict(payment)]})]
        assert keys == ["INST_1@2026-01-15:100:cash", "INST_1@2026-01-15:100:cash#2"]


# ── Alert ────────────────────────────────────────────────────

class TestAlert:
    def test_equality_ignores_created_at(self):
        a = Alert("low_stock:P1", "low_stock", Severity.MEDIUM, "low", ("P1",), created_at=NOW)
        b = Alert("low_stock:P1", "low_stock", Severity.MEDIUM, "low", ("P1",), created_at=None)
        assert a == b

    def test_sort_key_orders_by_severity_then_id(self):
        alerts = [
            Alert("b", "k", Severity.LOW, "m"),
            Alert("z", "k", Severity.HIGH, "m"),
            Alert("a", "k", Severity.HIGH, "m"),
        ]
        assert [a.id for a in sorted(alerts, key=Alert.sort_key)] == ["a", "z", "b"]

    def test_to_dict(self):
        alert = Alert("check_due:C1", "check_due", Severity.HIGH, "due", ("C1",), created_at=NOW)
        data = alert.to_dict()
        assert data["severity"] == "high"
        assert data["referenceIds"] == ["C1"]
        assert data["createdAt"] == NOW.isoformat()

    def test_rejects_empty_id(self):
        with pytest.raises(ValueError, match="id must be non-empty"):
            Alert("", "k", Severity.LOW, "m")
