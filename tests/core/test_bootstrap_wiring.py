"""
Tests for core.bootstrap — build_services() wires one shared ledger
through every engine and honours SyncConfig.
"""

from datetime import datetime, timezone

from core.config import AlertRules, SyncConfig
from core.store import InMemoryKeyValueStore
from core.time import FixedClock

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)


def _build(**config):
    from core.bootstrap import build_services
    return build_services(
        store=InMemoryKeyValueStore(), clock=FixedClock(NOW), config=SyncConfig(**config),
    )


class TestBuildServices:
    def test_memory_backend_without_store(self):
        from core.bootstrap import build_services
        services = build_services(config=SyncConfig(store_backend="memory"))
        assert isinstance(services.store, InMemoryKeyValueStore)

    def test_journal_follows_config(self):
        assert _build().journal is not None
        assert _build(journal_reversals=False).journal is None

    def test_clock_is_shared(self):
        services = _build()
        assert services.clock.now_utc() == NOW

    def test_scan_uses_configured_rules(self):
        from core.bootstrap import build_services

        store = InMemoryKeyValueStore({
            "sales_invoices": [
                {"id": "INV_1", "paymentStatus": "pending", "createdAt": "2026-02-19T06:00:00.000Z"},
            ],
        })
        default = build_services(store=store, clock=FixedClock(NOW), config=SyncConfig())
        strict = build_services(
            store=store, clock=FixedClock(NOW), config=SyncConfig(alert_rules=AlertRules(pending_hours=2)),
        )
        assert default.scan() == []
        assert [a.id for a in strict.scan()] == ["stale_pending_invoice:INV_1"]

    def test_engines_share_one_ledger(self):
        services = _build()
        store = services.store
        store.set("expenses", [
            {"id": "EXP_1", "amount": 20, "category": "rent", "status": "paid", "date": "2026-02-01"},
        ])
        services.posting.post_all("expense")
        assert len(services.read_model.get_ledger_entries()) == 1
        assert services.auditor.audit().issues == ()
