"""
RBO Core Config — Ledger Sync Settings
========================================
Thresholds and runtime switches come from the LEDGER_SYNC dict in the
Django settings module, never from engine code. Outside a configured
Django process (scripts, plain unit tests) the defaults apply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("rbo.config")


# ══════════════════════════════════════════════════════════════
# ALERT RULES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AlertRules:
    """
    Alert scanner thresholds.

    Counts are strict: a rule fires when the observed value is
    greater than the threshold.
    """

    pending_hours: int = 24
    daily_return_threshold: int = 10
    product_return_threshold: int = 5
    customer_return_threshold: int = 5
    expense_spike_ratio: float = 1.5
    expense_history_months: int = 6
    check_due_days: int = 3
    installment_due_days: int = 7
    stale_expense_days: int = 7
    inactive_supplier_days: int = 60

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{f.name} must be a number, got {value!r}.")
            if value < 0:
                raise ValueError(f"{f.name} must be >= 0, got {value}.")
        if self.expense_spike_ratio < 1:
            raise ValueError(
                f"expense_spike_ratio must be >= 1, got {self.expense_spike_ratio}."
            )
        if self.expense_history_months < 1:
            raise ValueError("expense_history_months must be >= 1.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AlertRules:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown alert rule(s): {', '.join(sorted(unknown))}.")
        return cls(**dict(data))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ══════════════════════════════════════════════════════════════
# SYNC CONFIG
# ══════════════════════════════════════════════════════════════

STORE_BACKENDS = ("memory", "django")


@dataclass(frozen=True)
class SyncConfig:
    store_backend: str = "memory"
    parallel_sync: bool = False
    max_workers: int = 4
    journal_reversals: bool = True
    alert_rules: AlertRules = field(default_factory=AlertRules)

    def __post_init__(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"store_backend must be one of {STORE_BACKENDS}, got '{self.store_backend}'."
            )
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ValueError(f"max_workers must be a positive integer, got {self.max_workers!r}.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SyncConfig:
        data = dict(data)
        rules = AlertRules.from_mapping(data.pop("ALERT_RULES", {}) or {})
        return cls(
            store_backend=data.get("STORE_BACKEND", "memory"),
            parallel_sync=bool(data.get("PARALLEL_SYNC", False)),
            max_workers=data.get("MAX_WORKERS", 4),
            journal_reversals=bool(data.get("JOURNAL_REVERSALS", True)),
            alert_rules=rules,
        )


def load_sync_config(overrides: Optional[Mapping[str, Any]] = None) -> SyncConfig:
    """
    Build SyncConfig from django.conf.settings.LEDGER_SYNC when Django
    is configured, then apply overrides (same upper-case keys).
    """
    from django.conf import settings
    from django.core.exceptions import ImproperlyConfigured

    raw: Dict[str, Any] = {}
    try:
        raw.update(getattr(settings, "LEDGER_SYNC", {}) or {})
    except ImproperlyConfigured:
        logger.debug("Django settings not configured; using LEDGER_SYNC defaults.")
    if overrides:
        raw.update(overrides)
    return SyncConfig.from_mapping(raw)
