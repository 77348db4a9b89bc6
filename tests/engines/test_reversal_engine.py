"""
Tests for engines.reversal — undoing postings on status regression or
deletion, Return stock reversal, reconcile and the reversal journal.
"""

from datetime import datetime, timezone

from core.config import SyncConfig
from core.primitives.ledger import ReferenceKey
from core.store import InMemoryKeyValueStore
from core.time import FixedClock

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)

EXPENSE = {"id": "EXP_1", "amount": 500, "category": "rent", "status": "paid", "date": "2026-02-01"}

RETURN = {
    "id": "RET_1", "returnNumber": "R-1", "customerName": "Ali", "totalAmount": 400,
    "status": "processed", "processedDate": "2026-02-18",
    "items": [
        {"productId": "P1", "productName": "Mug", "quantity": 3, "unitPrice": 50},
        {"productId": "P2", "productName": "Plate", "quantity": 5, "unitPrice": 30},
    ],
}


def _services(data=None, **config):
    from core.bootstrap import build_services

    store = InMemoryKeyValueStore(data or {})
    services = build_services(store=store, clock=FixedClock(NOW), config=SyncConfig(**config))
    return store, services


def _stock(store):
    return {p["id"]: p["stock"] for p in store.get("products")}


def _set_status(store, key, record_id, **fields):
    rows = store.get(key)
    for row in rows:
        if row["id"] == record_id:
            row.update(fields)
    store.set(key, rows)
    return next(r for r in rows if r["id"] == record_id)


# ══════════════════════════════════════════════════════════════
# REVERSE / ROUND TRIP
# ══════════════════════════════════════════════════════════════

class TestReverse:
    def test_reverse_removes_posting(self):
        store, services = _services({"expenses": [EXPENSE]})
        services.posting.post_all("expense")
        assert services.reversal.reverse(EXPENSE, "expense") is True
        assert services.ledger.entries() == []
        assert store.get("cash_flow_transactions") == []

    def test_reverse_without_posting_returns_false(self):
        _, services = _services({"expenses": [EXPENSE]})
        assert services.reversal.reverse(EXPENSE, "expense") is False

    def test_post_reverse_post_round_trip(self):
        _, services = _services({"expenses": [EXPENSE]})
        services.posting.post_all("expense")
        first = services.ledger.find(ReferenceKey("EXP_1", "expense"))
        services.reversal.reverse(EXPENSE, "expense")
        services.posting.post_all("expense")
        second = services.ledger.find(ReferenceKey("EXP_1", "expense"))
        assert second.entry_id != first.entry_id
        assert second.posting_signature() == first.posting_signature()
        assert (second.amount, second.direction, second.category) == (
            first.amount, first.direction, first.category,
        )

    def test_reversal_is_journaled(self):
        _, services = _services({"expenses": [EXPENSE]})
        services.posting.post_all("expense")
        services.reversal.reverse(EXPENSE, "expense")
        [row] = services.journal.history()
        assert row["reason"] == "status_regressed"
        assert row["entry"]["referenceId"] == "EXP_1"

    def test_journal_can_be_disabled(self):
        store, services = _services({"expenses": [EXPENSE]}, journal_reversals=False)
        services.posting.post_all("expense")
        services.reversal.reverse(EXPENSE, "expense")
        assert services.journal is None
        assert store.get("ledger_reversals") is None

    def test_reversing_installment_removes_every_payment(self):
        installment = {
            "id": "INST_1", "status": "active",
            "paymentHistory": [
                {"id": "IP_1", "amount": 100, "date": "2026-01-10"},
                {"id": "IP_2", "amount": 100, "date": "2026-02-10"},
            ],
        }
        _, services = _services({"installments": [installment]})
        assert services.posting.post_all("installment").posted == 2
        services.reversal.reverse(installment, "installment")
        assert services.ledger.entries() == []


# ══════════════════════════════════════════════════════════════
# RETURNS AND STOCK
# ══════════════════════════════════════════════════════════════

class TestReturnReversal:
    def _posted(self, p1=10, p2=0):
        store, services = _services({
            "returns": [RETURN],
            "products": [
                {"id": "P1", "name": "Mug", "stock": p1, "minStock": 2},
                {"id": "P2", "name": "Plate", "stock": p2, "minStock": 2},
            ],
        })
        services.posting.post_all("return")
        return store, services

    def test_process_then_reject_restores_ledger_and_stock(self):
        store, services = self._posted()
        assert len(services.ledger.entries()) == 1
        assert _stock(store) == {"P1": 13, "P2": 5}

        before = dict(RETURN)
        after = _set_status(store, "returns", "RET_1", status="rejected")
        outcome = services.reversal.handle_status_change("return", before, after)

        assert outcome.action.value == "reversed"
        assert services.ledger.entries() == []
        assert _stock(store) == {"P1": 10, "P2": 0}
        assert store.get("inventory_movements") == []

    def test_stock_never_goes_negative(self):
        store, services = self._posted()
        # Some restored units were sold again before the reversal.
        _set_status(store, "products", "P1", stock=1)
        services.reversal.reverse(RETURN, "return")
        assert _stock(store) == {"P1": 0, "P2": 0}

    def test_second_reversal_changes_nothing(self):
        store, services = self._posted()
        services.reversal.reverse(RETURN, "return")
        assert services.reversal.reverse(RETURN, "return") is False
        assert _stock(store) == {"P1": 10, "P2": 0}
        assert all(stock >= 0 for stock in _stock(store).values())

    def test_reprocessing_restores_stock_again(self):
        store, services = self._posted()
        services.reversal.reverse(RETURN, "return")
        services.posting.post_all("return")
        assert _stock(store) == {"P1": 13, "P2": 5}


# ══════════════════════════════════════════════════════════════
# STATE MACHINE
# ══════════════════════════════════════════════════════════════

class TestStatusTransitions:
    def test_entering_realized_posts(self):
        pending = dict(EXPENSE, status="pending")
        store, services = _services({"expenses": [pending]})
        after = _set_status(store, "expenses", "EXP_1", status="paid")
        outcome = services.reversal.handle_status_change("expense", pending, after)
        assert outcome.action.value == "posted"
        assert len(outcome.entries) == 1

    def test_pending_to_pending_is_a_no_op(self):
        pending = dict(EXPENSE, status="pending")
        _, services = _services({"expenses": [pending]})
        outcome = services.reversal.handle_status_change("expense", pending, pending)
        assert outcome.action.value == "none"

    def test_staying_realized_picks_up_new_installment_payments(self):
        installment = {
            "id": "INST_1", "status": "active",
            "paymentHistory": [{"id": "IP_1", "amount": 100, "date": "2026-01-10"}],
        }
        store, services = _services({"installments": [installment]})
        services.posting.post_all("installment")
        after = _set_status(
            store, "installments", "INST_1",
            paymentHistory=installment["paymentHistory"] + [{"id": "IP_2", "amount": 100, "date": "2026-02-10"}],
        )
        outcome = services.reversal.handle_status_change("installment", installment, after)
        assert outcome.action.value == "posted"
        assert [e.reference.reference_id for e in outcome.entries] == ["IP_2"]

    def test_deleted_record_is_reversed(self):
        store, services = _services({"expenses": [EXPENSE]})
        services.posting.post_all("expense")
        store.set("expenses", [])
        assert services.reversal.handle_deleted(EXPENSE, "expense") is True
        assert services.journal.history()[0]["reason"] == "record_deleted"


class TestReconcile:
    def test_regressed_records_are_reversed(self):
        store, services = _services({"expenses": [
            EXPENSE,
            {"id": "EXP_2", "amount": 50, "status": "paid", "date": "2026-02-02"},
        ]})
        services.posting.post_all("expense")
        _set_status(store, "expenses", "EXP_1", status="pending")

        result = services.reversal.reconcile("expense")

        assert result.reversed == 1
        assert result.entries_removed == 1
        assert [e.reference.reference_id for e in services.ledger.entries()] == ["EXP_2"]

    def test_cancelled_installment_loses_its_payments(self):
        installment = {
            "id": "INST_1", "status": "active",
            "paymentHistory": [{"id": "IP_1", "amount": 100, "date": "2026-01-10"}],
        }
        store, services = _services({"installments": [installment]})
        services.posting.post_all("installment")
        _set_status(store, "installments", "INST_1", status="cancelled")
        assert services.reversal.reconcile("installment").reversed == 1
        assert services.ledger.entries() == []

    def test_reconcile_is_idempotent(self):
        store, services = _services({"expenses": [EXPENSE]})
        services.posting.post_all("expense")
        _set_status(store, "expenses", "EXP_1", status="pending")
        services.reversal.reconcile("expense")
        assert services.reversal.reconcile("expense").reversed == 0
