"""
RBO Bootstrap — Service Wiring
================================
One place that builds every engine over a shared store, ledger and
clock. No module-level singletons: callers own the container.
"""

from core.bootstrap.wiring import LedgerSyncServices, build_services

__all__ = [
    "LedgerSyncServices",
    "build_services",
]
