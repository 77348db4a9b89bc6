"""
RBO Core Config — Public API
==============================
Settings-driven thresholds for the ledger sync engines.
"""

from core.config.sync import AlertRules, SyncConfig, load_sync_config

__all__ = [
    "AlertRules",
    "SyncConfig",
    "load_sync_config",
]
