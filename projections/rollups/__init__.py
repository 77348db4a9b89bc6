"""
RBO Projections — Owner Rollups
=================================
Denormalized counters stored on customer, supplier and employee rows
(order count, total debt, returns, installments, checks, payroll
totals). They are a materialized cache, never a source of truth, and
recompute() regenerates every one of them from the source records.

Built from:
- sales_invoices, returns, installments, checks   -> customers
- purchase_invoices, checks                       -> suppliers
- payroll_records (through EmployeeFinancialsPort) -> employees
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from core.primitives.source import SOURCE_KINDS, SourceKind, record_id
from core.store import (
    CHECKS,
    CUSTOMERS,
    INSTALLMENTS,
    PURCHASE_INVOICES,
    RETURNS,
    SALES_INVOICES,
    SUPPLIERS,
    KeyValueStore,
    StoreUnavailableError,
    read_collection,
)
from engines.hr.services import PayrollSummaryService
from engines.posting.policies import parse_amount

logger = logging.getLogger("rbo.rollups")

OPEN_INSTALLMENT_STATUSES = frozenset({"active", "overdue"})


@dataclass(frozen=True)
class RollupResult:
    customers_updated: int = 0
    suppliers_updated: int = 0
    employees_updated: int = 0
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customers_updated": self.customers_updated,
            "suppliers_updated": self.suppliers_updated,
            "employees_updated": self.employees_updated,
            "fatal_error": self.fatal_error,
        }


def _money(value: Any) -> Decimal:
    amount = parse_amount(value)
    return Decimal(str(amount)) if amount is not None else Decimal(0)


def _grouped(rows: List[Dict[str, Any]], field: str) -> Dict[str, List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for row in rows:
        value = row.get(field)
        if value not in (None, ""):
            groups[str(value)].append(row)
    return groups


# ══════════════════════════════════════════════════════════════
# PURE ROLLUP FUNCTIONS
# ══════════════════════════════════════════════════════════════

def customer_rollup(
    invoices: List[Mapping[str, Any]],
    returns: List[Mapping[str, Any]],
    installments: List[Mapping[str, Any]],
    checks: List[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Rollup fields for one customer from that customer's records."""
    sales = SOURCE_KINDS[SourceKind.SALES_INVOICE]
    ret = SOURCE_KINDS[SourceKind.RETURN]
    inst = SOURCE_KINDS[SourceKind.INSTALLMENT]

    live_invoices = [i for i in invoices if not sales.is_terminal(i)]
    spent = sum((_money(i.get("total")) for i in live_invoices if sales.is_realized(i)), Decimal(0))
    invoice_debt = sum(
        (_money(i.get("total")) for i in live_invoices if not sales.is_realized(i)), Decimal(0)
    )
    live_installments = [i for i in installments if not inst.is_terminal(i)]
    installment_debt = sum(
        (_money(i.get("remainingAmount")) for i in live_installments
         if i.get("status") in OPEN_INSTALLMENT_STATUSES),
        Decimal(0),
    )
    live_returns = [r for r in returns if not ret.is_terminal(r)]
    return_value = sum(
        (_money(r.get("totalAmount")) for r in live_returns if ret.is_realized(r)), Decimal(0)
    )
    return {
        "totalOrders": len(live_invoices),
        "totalSpent": float(spent),
        "totalDebt": float(invoice_debt + installment_debt),
        "totalReturns": len(live_returns),
        "returnValue": float(return_value),
        "hasInstallments": bool(live_installments),
        "totalInstallments": len(live_installments),
        "totalChecks": len(checks),
    }


def supplier_rollup(
    purchases: List[Mapping[str, Any]],
    checks: List[Mapping[str, Any]],
) -> Dict[str, Any]:
    spec = SOURCE_KINDS[SourceKind.PURCHASE_INVOICE]
    live = [p for p in purchases if not spec.is_terminal(p)]
    paid = sum((_money(p.get("total")) for p in live if spec.is_realized(p)), Decimal(0))
    return {
        "totalPurchases": len(live),
        "totalPaid": float(paid),
        "totalChecks": len(checks),
    }


# ══════════════════════════════════════════════════════════════
# PROJECTION
# ══════════════════════════════════════════════════════════════

class OwnerRollupProjection:
    projection_name = "owner_rollups"

    def __init__(self, store: KeyValueStore, payroll: PayrollSummaryService) -> None:
        self._store = store
        self._payroll = payroll

    def recompute(self) -> RollupResult:
        """Regenerate every rollup from source records. Writes only changed rows."""
        try:
            customers = self._recompute_customers()
            suppliers = self._recompute_suppliers()
            employees = self._payroll.sync_employee_financials()
        except StoreUnavailableError as exc:
            logger.error(f"Rollup recompute aborted: {exc}")
            return RollupResult(fatal_error=str(exc))
        logger.info(
            f"Rollups: {customers} customers, {suppliers} suppliers, {employees} employees updated"
        )
        return RollupResult(
            customers_updated=customers, suppliers_updated=suppliers, employees_updated=employees,
        )

    def customer_rollups(self) -> Dict[str, Dict[str, Any]]:
        """Freshly computed rollups per customer id, without writing them."""
        invoices = _grouped(read_collection(self._store, SALES_INVOICES), "customerId")
        returns = _grouped(read_collection(self._store, RETURNS), "customerId")
        installments = _grouped(read_collection(self._store, INSTALLMENTS), "customerId")
        checks = _grouped(read_collection(self._store, CHECKS), "customerId")
        result = {}
        for customer in read_collection(self._store, CUSTOMERS):
            cid = record_id(customer)
            if cid is None:
                continue
            result[cid] = customer_rollup(
                invoices.get(cid, []), returns.get(cid, []),
                installments.get(cid, []), checks.get(cid, []),
            )
        return result

    def _recompute_customers(self) -> int:
        rollups = self.customer_rollups()
        return self._write(CUSTOMERS, rollups)

    def _recompute_suppliers(self) -> int:
        purchases = _grouped(read_collection(self._store, PURCHASE_INVOICES), "supplierId")
        checks = _grouped(read_collection(self._store, CHECKS), "supplierId")
        rollups = {}
        for supplier in read_collection(self._store, SUPPLIERS):
            sid = record_id(supplier)
            if sid is not None:
                rollups[sid] = supplier_rollup(purchases.get(sid, []), checks.get(sid, []))
        return self._write(SUPPLIERS, rollups)

    def _write(self, key: str, rollups: Dict[str, Dict[str, Any]]) -> int:
        rows = read_collection(self._store, key)
        changed = 0
        for row in rows:
            fields = rollups.get(record_id(row) or "")
            if fields and any(row.get(k) != v for k, v in fields.items()):
                row.update(fields)
                changed += 1
        if changed:
            self._store.set(key, rows)
        return changed
