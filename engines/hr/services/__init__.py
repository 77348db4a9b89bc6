"""
RBO HR Engine — Employee Financials
=====================================
Payroll reads payroll records and writes each employee's financial
summary. The employee side is reached only through
EmployeeFinancialsPort, so payroll never imports the employee store
and the two never depend on each other in a cycle.

The summary fields written on employee rows are a derived cache:
regenerated in full from payroll_records on every sync.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

from core.primitives.source import SOURCE_KINDS, SourceKind, record_id
from core.store import EMPLOYEES, PAYROLL_RECORDS, KeyValueStore, read_collection
from core.time import parse_record_date, to_date_string
from engines.posting.policies import parse_amount

logger = logging.getLogger("rbo.hr")


# ══════════════════════════════════════════════════════════════
# SUMMARY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EmployeeFinancialSummary:
    employee_id: str
    total_paid: float = 0.0
    total_unpaid: float = 0.0
    total_records: int = 0
    last_paid_date: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        """Field names as stored on the employee row."""
        return {
            "totalPaid": self.total_paid,
            "totalUnpaid": self.total_unpaid,
            "payrollRecords": self.total_records,
            "lastPaidDate": self.last_paid_date,
        }


# ══════════════════════════════════════════════════════════════
# PORT
# ══════════════════════════════════════════════════════════════

class EmployeeFinancialsPort(Protocol):
    """The employee store as seen from payroll."""

    def employee_ids(self) -> List[str]:
        ...  # pragma: no cover

    def update_financial_summaries(self, summaries: List[EmployeeFinancialSummary]) -> int:
        """Write summaries onto employee rows. Returns rows changed."""
        ...  # pragma: no cover


class StoreEmployeeFinancials:
    """EmployeeFinancialsPort over the `employees` collection."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lock = threading.Lock()

    def employee_ids(self) -> List[str]:
        return [eid for eid in (record_id(e) for e in read_collection(self._store, EMPLOYEES)) if eid]

    def update_financial_summaries(self, summaries: List[EmployeeFinancialSummary]) -> int:
        by_id = {s.employee_id: s for s in summaries}
        with self._lock:
            employees = read_collection(self._store, EMPLOYEES)
            changed = 0
            for employee in employees:
                summary = by_id.get(record_id(employee) or "")
                if summary is None:
                    continue
                fields = summary.to_fields()
                if any(employee.get(k) != v for k, v in fields.items()):
                    employee.update(fields)
                    changed += 1
            if changed:
                self._store.set(EMPLOYEES, employees)
            return changed


# ══════════════════════════════════════════════════════════════
# PAYROLL SUMMARY SERVICE
# ══════════════════════════════════════════════════════════════

def summarize_payroll(employee_id: str, records: List[Mapping[str, Any]]) -> EmployeeFinancialSummary:
    spec = SOURCE_KINDS[SourceKind.PAYROLL]
    paid = 0.0
    unpaid = 0.0
    count = 0
    last_paid = None
    for record in records:
        if str(record.get("employeeId", "")) != employee_id:
            continue
        count += 1
        amount = parse_amount(record.get("netSalary")) or 0.0
        if spec.is_realized(record):
            paid += amount
            when = parse_record_date(record.get("paidDate") or record.get("date"))
            if when is not None and (last_paid is None or when > last_paid):
                last_paid = when
        else:
            unpaid += amount
    return EmployeeFinancialSummary(
        employee_id=employee_id,
        total_paid=round(paid, 2),
        total_unpaid=round(unpaid, 2),
        total_records=count,
        last_paid_date=to_date_string(last_paid) if last_paid else None,
    )


class PayrollSummaryService:
    def __init__(self, store: KeyValueStore, employees: EmployeeFinancialsPort) -> None:
        self._store = store
        self._employees = employees

    def summarize(self, employee_id: str) -> EmployeeFinancialSummary:
        return summarize_payroll(employee_id, read_collection(self._store, PAYROLL_RECORDS))

    def summarize_all(self) -> Dict[str, EmployeeFinancialSummary]:
        records = read_collection(self._store, PAYROLL_RECORDS)
        return {eid: summarize_payroll(eid, records) for eid in self._employees.employee_ids()}

    def sync_employee_financials(self) -> int:
        """Recompute and write every employee's summary. Returns rows changed."""
        summaries = list(self.summarize_all().values())
        changed = self._employees.update_financial_summaries(summaries)
        logger.info(f"Employee financials: {changed} of {len(summaries)} updated")
        return changed
