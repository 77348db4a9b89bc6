"""
Tests for adapters.django_store — the database-backed KeyValueStore and
the engine graph running on top of it.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from django.db import DatabaseError

from core.config import SyncConfig
from core.store import StoreUnavailableError
from core.time import FixedClock

pytestmark = pytest.mark.django_db(transaction=True)

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    from adapters.django_store.store import DjangoKeyValueStore
    return DjangoKeyValueStore()


class _DownManager:
    def filter(self, **kwargs):
        raise DatabaseError("database is locked")

    def update_or_create(self, **kwargs):
        raise DatabaseError("database is locked")

    def order_by(self, *fields):
        raise DatabaseError("database is locked")


class _DownModel:
    objects = _DownManager()


class TestDjangoKeyValueStore:
    def test_missing_key_returns_default(self, store):
        assert store.get("expenses") is None
        assert store.get("expenses", []) == []

    def test_set_then_get(self, store):
        store.set("expenses", [{"id": "EXP_1", "amount": 500}])
        assert store.get("expenses") == [{"id": "EXP_1", "amount": 500}]

    def test_set_replaces_value(self, store):
        from adapters.django_store.models import KeyValueEntry

        store.set("expenses", [{"id": "EXP_1"}])
        store.set("expenses", [])
        assert store.get("expenses") == []
        assert KeyValueEntry.objects.filter(key="expenses").count() == 1

    def test_keys_are_sorted(self, store):
        store.set("products", [])
        store.set("checks", [])
        assert store.keys() == ["checks", "products"]

    def test_database_errors_become_store_unavailable(self, store, monkeypatch):
        monkeypatch.setattr("adapters.django_store.store.KeyValueEntry", _DownModel)
        with pytest.raises(StoreUnavailableError, match="'expenses'"):
            store.get("expenses")
        with pytest.raises(StoreUnavailableError, match="database is locked"):
            store.set("expenses", [])
        with pytest.raises(StoreUnavailableError):
            store.keys()


class TestEnginesOnDjangoStore:
    def test_sync_all_posts_once(self, store):
        from core.bootstrap import build_services

        store.set("expenses", [
            {"id": "EXP_1", "amount": 500, "category": "rent", "status": "paid", "date": "2026-02-01"},
        ])
        services = build_services(store=store, clock=FixedClock(NOW), config=SyncConfig(store_backend="django"))
        first = services.sync_all()
        second = services.sync_all()
        assert first.success and second.success
        assert (first.posted, second.posted) == (1, 0)
        [row] = store.get("cash_flow_transactions")
        assert (row["referenceId"], row["referenceType"], row["amount"]) == ("EXP_1", "expense", 500)

    def test_django_backend_is_the_default_store(self):
        from adapters.django_store.store import DjangoKeyValueStore
        from core.bootstrap import build_services

        services = build_services(clock=FixedClock(NOW), config=SyncConfig(store_backend="django"))
        assert isinstance(services.store, DjangoKeyValueStore)
        assert services.scan() == []
