"""
RBO Alert Scanner — Application Service
=========================================
scan(rules) is a pure recomputation: it reads current state, runs
every alert rule, stamps the scan time, drops repeated ids (first
wins) and sorts by severity then id. It never writes, so running it
twice over unchanged state yields equal alerts.

Store failures propagate as StoreUnavailableError.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from core.config import AlertRules
from core.primitives.alert import Alert
from core.store import (
    CHECKS,
    CUSTOMERS,
    EXPENSES,
    INSTALLMENTS,
    PURCHASE_INVOICES,
    RETURNS,
    SALES_INVOICES,
    SUPPLIERS,
    KeyValueStore,
    read_collection,
)
from core.time import Clock
from engines.alerts.rules import DEFAULT_RULES, AlertRule, ScanState
from engines.inventory.services import InventoryPort

logger = logging.getLogger("rbo.alerts")

SCANNED_COLLECTIONS = (
    CHECKS,
    CUSTOMERS,
    EXPENSES,
    INSTALLMENTS,
    PURCHASE_INVOICES,
    RETURNS,
    SALES_INVOICES,
    SUPPLIERS,
)


class AlertScanner:
    def __init__(
        self,
        store: KeyValueStore,
        inventory: InventoryPort,
        clock: Clock,
        alert_rules: Optional[Sequence[AlertRule]] = None,
    ) -> None:
        self._store = store
        self._inventory = inventory
        self._clock = clock
        self._alert_rules = list(alert_rules) if alert_rules is not None else list(DEFAULT_RULES)

    def load_state(self) -> ScanState:
        return ScanState(
            collections={key: read_collection(self._store, key) for key in SCANNED_COLLECTIONS},
            low_stock=self._inventory.get_low_stock_products(),
            out_of_stock=self._inventory.get_out_of_stock_products(),
        )

    def scan(self, rules: Optional[AlertRules] = None) -> List[Alert]:
        rules = rules or AlertRules()
        now = self._clock.now_utc()
        state = self.load_state()
        unique: Dict[str, Alert] = {}
        for rule in self._alert_rules:
            for alert in rule.evaluate(state, rules, now):
                unique.setdefault(alert.id, replace(alert, created_at=now))
        alerts = sorted(unique.values(), key=Alert.sort_key)
        logger.info(f"scan: {len(alerts)} alerts")
        return alerts
