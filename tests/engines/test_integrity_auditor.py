"""
Tests for engines.integrity — dangling references, duplicates, stale
postings, malformed rows, rollup flags and owner links; repair().
"""

from datetime import datetime, timezone

from core.config import SyncConfig
from core.ledger import IssueCode
from core.primitives.ledger import (
    LedgerCategory,
    LedgerDirection,
    LedgerEntry,
    ReferenceKey,
)
from core.store import InMemoryKeyValueStore
from core.time import FixedClock

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)


def _row(entry_id, ref_id, ref_type="expense", amount=100):
    return LedgerEntry(
        entry_id=entry_id,
        date="2026-02-10",
        direction=LedgerDirection.EXPENSE,
        category=LedgerCategory.OTHER,
        amount=amount,
        reference=ReferenceKey(ref_id, ref_type) if ref_id else None,
    ).to_dict()


def _services(data):
    from core.bootstrap import build_services

    store = InMemoryKeyValueStore(data)
    return store, build_services(store=store, clock=FixedClock(NOW), config=SyncConfig())


class TestDanglingReferences:
    def test_deleted_expense_is_reported_repaired_and_gone(self):
        store, services = _services({
            "expenses": [{"id": "EXP_1", "amount": 100, "status": "paid"}],
            "cash_flow_transactions": [_row("CF_1", "EXP_1"), _row("CF_2", "EXP_DELETED")],
        })
        report = services.auditor.audit()
        assert report.count(IssueCode.DANGLING_REFERENCE) == 1
        assert len(report.issues) == 1
        assert "EXP_DELETED" in report.messages[0]

        repaired = services.auditor.repair()
        assert repaired.fixed == 1
        assert repaired.issues == ()

        assert services.auditor.audit().issues == ()
        assert [r["id"] for r in store.get("cash_flow_transactions")] == ["CF_1"]
        assert services.journal.history()[0]["reason"] == "dangling_reference"

    def test_manual_and_unknown_references_are_ignored(self):
        _, services = _services({
            "cash_flow_transactions": [
                _row("CF_1", None),
                _row("CF_2", "M1", "manual"),
                _row("CF_3", "X1", "legacy_import"),
            ],
        })
        assert services.auditor.audit().issues == ()

    def test_installment_payment_ids_are_known(self):
        _, services = _services({
            "installments": [{"id": "INST_1", "status": "active",
                              "paymentHistory": [{"id": "IP_1", "amount": 10, "date": "2026-02-01"}]}],
            "cash_flow_transactions": [_row("CF_1", "IP_1", "installment")],
        })
        assert services.auditor.audit().issues == ()


class TestFlaggedIssues:
    def test_duplicates_are_repaired_keeping_the_first(self):
        store, services = _services({
            "expenses": [{"id": "EXP_1", "amount": 100, "status": "paid"}],
            "cash_flow_transactions": [_row("CF_1", "EXP_1"), _row("CF_2", "EXP_1"), _row("CF_3", "EXP_1")],
        })
        report = services.auditor.audit()
        assert report.count(IssueCode.DUPLICATE_POSTING) == 1
        assert [e.entry_id for e in report.surplus_duplicates] == ["CF_2", "CF_3"]

        assert services.auditor.repair().fixed == 2
        assert [r["id"] for r in store.get("cash_flow_transactions")] == ["CF_1"]

    def test_stale_posting_is_flagged_not_removed(self):
        store, services = _services({
            "expenses": [{"id": "EXP_1", "amount": 100, "status": "pending"}],
            "cash_flow_transactions": [_row("CF_1", "EXP_1")],
        })
        assert services.auditor.audit().count(IssueCode.STALE_POSTING) == 1
        repaired = services.auditor.repair()
        assert repaired.fixed == 0
        assert [i.code for i in repaired.issues] == [IssueCode.STALE_POSTING]
        assert len(store.get("cash_flow_transactions")) == 1

    def test_malformed_row_is_flagged(self):
        _, services = _services({"cash_flow_transactions": [{"id": "BAD", "amount": "x"}]})
        report = services.auditor.audit()
        assert report.count(IssueCode.MALFORMED_ENTRY) == 1
        assert report.issues[0].record_id == "BAD"

    def test_has_installments_flag_mismatch(self):
        _, services = _services({
            "customers": [
                {"id": "C1", "name": "Ali", "hasInstallments": True},
                {"id": "C2", "name": "Omar", "hasInstallments": False},
                {"id": "C3", "name": "Lina", "hasInstallments": True},
            ],
            "installments": [
                {"id": "I1", "customerId": "C2", "status": "active"},
                {"id": "I2", "customerId": "C3", "status": "completed"},
            ],
        })
        report = services.auditor.audit()
        flagged = sorted(i.record_id for i in report.issues if i.code == IssueCode.ROLLUP_MISMATCH)
        assert flagged == ["C1", "C2"]

    def test_rollup_mismatch_is_not_repaired(self):
        store, services = _services({"customers": [{"id": "C1", "name": "Ali", "hasInstallments": True}]})
        repaired = services.auditor.repair()
        assert repaired.fixed == 0
        assert store.get("customers")[0]["hasInstallments"] is True

    def test_dangling_owner_link(self):
        _, services = _services({
            "customers": [{"id": "C1", "name": "Ali"}],
            "checks": [
                {"id": "CHK_1", "customerId": "C1"},
                {"id": "CHK_2", "customerId": "C404"},
            ],
        })
        report = services.auditor.audit()
        assert report.count(IssueCode.DANGLING_OWNER_LINK) == 1
        assert "C404" in report.messages[0]


class TestDeletedReturnStock:
    RETURN = {
        "id": "RET_1", "status": "processed", "processedDate": "2026-02-18",
        "totalAmount": 400,
        "items": [
            {"productId": "P1", "productName": "Cable", "quantity": 3, "unitPrice": 50},
            {"productId": "P2", "productName": "Adapter", "quantity": 5, "total": 250},
        ],
    }
    PRODUCTS = [
        {"id": "P1", "name": "Cable", "stock": 10},
        {"id": "P2", "name": "Adapter", "stock": 0},
    ]

    def test_movements_of_a_deleted_return_are_reported(self):
        store, services = _services({"returns": [dict(self.RETURN)], "products": list(self.PRODUCTS)})
        services.posting.post_all("return")
        store.set("returns", [])
        services.coordinator.sync_all()

        report = services.auditor.audit()
        assert report.count(IssueCode.ORPHANED_STOCK_MOVEMENT) == 1
        assert report.orphaned_returns == ("RET_1",)

    def test_repair_takes_the_restock_back_out(self):
        store, services = _services({"returns": [dict(self.RETURN)], "products": list(self.PRODUCTS)})
        services.posting.post_all("return")
        assert {p["id"]: p["stock"] for p in store.get("products")} == {"P1": 13, "P2": 5}

        store.set("returns", [])
        services.coordinator.sync_all()
        repaired = services.auditor.repair()

        assert repaired.issues == ()
        assert {p["id"]: p["stock"] for p in store.get("products")} == {"P1": 10, "P2": 0}
        assert store.get("inventory_movements") == []
        assert [r.get("referenceId") for r in store.get("cash_flow_transactions")] == []

    def test_movements_of_a_live_return_are_left_alone(self):
        store, services = _services({"returns": [dict(self.RETURN)], "products": list(self.PRODUCTS)})
        services.posting.post_all("return")

        assert services.auditor.audit().issues == ()
        assert services.auditor.repair().fixed == 0
        assert len(store.get("inventory_movements")) == 2


class TestInstallmentPaymentsWithoutIds:
    def test_removing_an_earlier_payment_keeps_the_later_posting(self):
        store, services = _services({
            "installments": [{
                "id": "INST_1", "customerName": "Ali", "status": "active",
                "paymentHistory": [
                    {"amount": 100, "date": "2026-01-15"},
                    {"amount": 200, "date": "2026-02-15"},
                ],
            }],
        })
        services.posting.post_all("installment")

        installment = store.get("installments")[0]
        installment["paymentHistory"] = installment["paymentHistory"][1:]
        store.set("installments", [installment])

        result = services.posting.post_all("installment")
        assert result.posted == 0

        report = services.auditor.audit()
        assert report.count(IssueCode.DANGLING_REFERENCE) == 1
        assert [e.amount for e in report.dangling] == [100]

        services.auditor.repair()
        rows = store.get("cash_flow_transactions")
        assert [r["amount"] for r in rows] == [200]
        assert rows[0]["date"] == "2026-02-15"


class TestLegacyCheckRows:
    DATA = {
        "checks": [{"id": "CHK_1", "amount": 900, "status": "cashed", "dueDate": "2026-02-12"}],
    }

    def test_manual_row_repeating_a_posted_check_is_repaired(self):
        store, services = _services(dict(self.DATA, cash_flow_transactions=[
            _row("CF_OLD", "CHK_1", "manual", 900),
            _row("CF_1", "CHK_1", "check", 900),
        ]))
        report = services.auditor.audit()
        assert report.count(IssueCode.LEGACY_CHECK_DUPLICATE) == 1
        assert [e.entry_id for e in report.surplus_duplicates] == ["CF_OLD"]

        repaired = services.auditor.repair()
        assert repaired.fixed == 1
        assert repaired.issues == ()
        assert [r["id"] for r in store.get("cash_flow_transactions")] == ["CF_1"]

    def test_manual_row_alone_is_not_flagged(self):
        _, services = _services(dict(self.DATA, cash_flow_transactions=[
            _row("CF_OLD", "CHK_1", "manual", 900),
        ]))
        assert services.auditor.audit().issues == ()
