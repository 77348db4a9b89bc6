"""
RBO Core Store — Public API
=============================
Key-value store contract shared by every record collection and
the unified ledger.
"""

from core.store.errors import StoreError, StoreUnavailableError
from core.store.keys import (
    ACCOUNT_BALANCE,
    CASH_FLOW_TRANSACTIONS,
    CHECKS,
    CUSTOMERS,
    EMPLOYEES,
    EXPENSES,
    INSTALLMENTS,
    INVENTORY_MOVEMENTS,
    LEDGER_REVERSALS,
    PAYROLL_RECORDS,
    PRODUCTS,
    PURCHASE_INVOICES,
    RETURNS,
    SALES_INVOICES,
    SUPPLIERS,
    USERS,
)
from core.store.kv import InMemoryKeyValueStore, KeyValueStore, read_collection

__all__ = [
    "StoreError",
    "StoreUnavailableError",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "read_collection",
    "ACCOUNT_BALANCE",
    "CASH_FLOW_TRANSACTIONS",
    "CHECKS",
    "CUSTOMERS",
    "EMPLOYEES",
    "EXPENSES",
    "INSTALLMENTS",
    "INVENTORY_MOVEMENTS",
    "LEDGER_REVERSALS",
    "PAYROLL_RECORDS",
    "PRODUCTS",
    "PURCHASE_INVOICES",
    "RETURNS",
    "SALES_INVOICES",
    "SUPPLIERS",
    "USERS",
]
