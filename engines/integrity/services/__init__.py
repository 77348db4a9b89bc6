"""
RBO Integrity Auditor — Application Service
=============================================
Checks the ledger and the cross-links against the source collections.

audit() only reports. repair() fixes what is safe to fix mechanically:
- dangling postings (source record gone) are deleted
- surplus duplicate postings for one reference key are deleted,
  keeping the first
- a legacy manual row carrying a cashed check (referenceId = check id)
  is deleted when the check also has its own posting
- stock movements of returns that no longer exist are removed through
  the inventory collaborator, which takes their quantities back out of
  stock (a return deleted without the delete hook)

Everything else is flagged only: stale postings (reconcile handles
those), unparseable ledger rows, dangling owner links, and rollup
counters that disagree with the records (rollups are advisory; they
are regenerated by the rollup projection, never patched here).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from core.ledger import (
    DanglingReferenceError,
    Issue,
    IssueCode,
    LedgerStore,
    ReversalJournal,
    ReversalReason,
)
from core.primitives.ledger import LedgerEntry, ReferenceKey
from core.primitives.source import (
    SOURCE_KINDS,
    SourceKind,
    iter_payments,
    record_id,
)
from core.store import (
    CUSTOMERS,
    INSTALLMENTS,
    INVENTORY_MOVEMENTS,
    KeyValueStore,
    StoreUnavailableError,
    read_collection,
)
from engines.inventory.services import InventoryPort
from engines.linking.policies import LINK_SPECS

logger = logging.getLogger("rbo.integrity")

_KIND_BY_REFERENCE_TYPE = {kind.value: kind for kind in SourceKind}


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AuditReport:
    issues: Tuple[Issue, ...] = ()
    dangling: Tuple[LedgerEntry, ...] = ()
    surplus_duplicates: Tuple[LedgerEntry, ...] = ()
    orphaned_returns: Tuple[str, ...] = ()
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None

    @property
    def messages(self) -> List[str]:
        return [str(i) for i in self.issues]

    def count(self, code: str) -> int:
        return sum(1 for i in self.issues if i.code == code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issues": [i.to_dict() for i in self.issues],
            "fatal_error": self.fatal_error,
        }


@dataclass(frozen=True)
class RepairResult:
    fixed: int = 0
    issues: Tuple[Issue, ...] = ()
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None

    @property
    def messages(self) -> List[str]:
        return [str(i) for i in self.issues]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fixed": self.fixed,
            "issues": [i.to_dict() for i in self.issues],
            "fatal_error": self.fatal_error,
        }


# ══════════════════════════════════════════════════════════════
# AUDITOR
# ══════════════════════════════════════════════════════════════

class IntegrityAuditor:
    def __init__(
        self,
        store: KeyValueStore,
        ledger: LedgerStore,
        journal: Optional[ReversalJournal] = None,
        inventory: Optional[InventoryPort] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._journal = journal
        self._inventory = inventory

    def audit(self) -> AuditReport:
        try:
            self._ledger.reload()
            return self._audit()
        except StoreUnavailableError as exc:
            logger.error(f"audit aborted: {exc}")
            return AuditReport(fatal_error=str(exc))

    def repair(self) -> RepairResult:
        """
        Delete dangling and surplus duplicate postings, revert the stock
        movements of deleted returns, then re-audit.
        """
        try:
            self._ledger.reload()
            report = self._audit()
            fixed = 0
            for entry in report.dangling:
                if self._ledger.remove_entry(entry.entry_id) is not None:
                    fixed += 1
                    self._journal_removal(entry, ReversalReason.DANGLING_REFERENCE)
            for entry in report.surplus_duplicates:
                if self._ledger.remove_entry(entry.entry_id) is not None:
                    fixed += 1
                    self._journal_removal(entry, ReversalReason.DUPLICATE_POSTING)
            if self._inventory is not None:
                for rid in report.orphaned_returns:
                    if self._inventory.remove_movements(rid, SourceKind.RETURN.value):
                        fixed += 1
                        logger.info(f"Return {rid} no longer exists; its stock movements were reverted")
            remaining = self._audit()
        except StoreUnavailableError as exc:
            logger.error(f"repair aborted: {exc}")
            return RepairResult(fatal_error=str(exc))
        logger.info(f"repair: {fixed} fixed, {len(remaining.issues)} remaining")
        return RepairResult(fixed=fixed, issues=remaining.issues)

    # ── checks ────────────────────────────────────────────────

    def _audit(self) -> AuditReport:
        issues: List[Issue] = []
        dangling: List[LedgerEntry] = []
        surplus: List[LedgerEntry] = []
        sources = self._load_sources()

        for entry in self._ledger.entries():
            ref = entry.reference
            if ref is None:
                continue
            if ref.is_manual:
                if self._doubles_a_check(ref, sources[SourceKind.CHECK][0]):
                    surplus.append(entry)
                    issues.append(Issue(
                        code=IssueCode.LEGACY_CHECK_DUPLICATE,
                        message=f"Manual ledger entry '{entry.entry_id}' repeats the posting of check '{ref.reference_id}'.",
                        record_id=ref.reference_id,
                        kind=SourceKind.CHECK.value,
                    ))
                continue
            kind = _KIND_BY_REFERENCE_TYPE.get(ref.reference_type)
            if kind is None:
                continue
            known_ids, realized_ids = sources[kind]
            if ref.reference_id not in known_ids:
                dangling.append(entry)
                issues.append(Issue.from_error(DanglingReferenceError(str(ref), entry.entry_id)))
            elif ref.reference_id not in realized_ids:
                issues.append(Issue(
                    code=IssueCode.STALE_POSTING,
                    message=f"Ledger entry '{entry.entry_id}' posts '{ref}' but the record is not realized.",
                    record_id=ref.reference_id,
                    kind=kind.value,
                ))

        for ref, count in self._ledger.references().items():
            if count < 2:
                continue
            extra = self._ledger.find_all(ref)[1:]
            surplus.extend(extra)
            issues.append(Issue(
                code=IssueCode.DUPLICATE_POSTING,
                message=f"'{ref}' is posted {count} times.",
                record_id=ref.reference_id,
                kind=ref.reference_type,
            ))

        for row in self._ledger.unparsed_rows():
            issues.append(Issue(
                code=IssueCode.MALFORMED_ENTRY,
                message=f"Ledger row '{row.get('id', '?')}' cannot be read.",
                record_id=str(row.get("id")) if row.get("id") is not None else None,
            ))

        orphaned = self._orphaned_returns(sources[SourceKind.RETURN][0])
        for rid in orphaned:
            issues.append(Issue(
                code=IssueCode.ORPHANED_STOCK_MOVEMENT,
                message=f"Stock movements reference missing return '{rid}'.",
                record_id=rid,
                kind=SourceKind.RETURN.value,
            ))
        issues.extend(self._rollup_issues())
        issues.extend(self._owner_link_issues())

        return AuditReport(
            issues=tuple(issues),
            dangling=tuple(dangling),
            surplus_duplicates=tuple(surplus),
            orphaned_returns=tuple(orphaned),
        )

    def _load_sources(self) -> Dict[SourceKind, Tuple[Set[str], Set[str]]]:
        """(all ids, realized ids) per kind. Installments contribute payment ids."""
        result = {}
        for kind, spec in SOURCE_KINDS.items():
            known: Set[str] = set()
            realized: Set[str] = set()
            for record in read_collection(self._store, spec.store_key):
                if spec.per_payment:
                    ids = [pid for pid, _ in iter_payments(record)]
                else:
                    rid = record_id(record)
                    ids = [rid] if rid is not None else []
                known.update(ids)
                if spec.is_realized(record):
                    realized.update(ids)
            result[kind] = (known, realized)
        return result

    def _doubles_a_check(self, ref: ReferenceKey, check_ids: Set[str]) -> bool:
        return (
            ref.reference_id in check_ids
            and self._ledger.contains(ReferenceKey(ref.reference_id, SourceKind.CHECK.value))
        )

    def _orphaned_returns(self, return_ids: Set[str]) -> List[str]:
        """Return ids that stock movements point at but the returns collection lacks."""
        orphaned: List[str] = []
        for movement in read_collection(self._store, INVENTORY_MOVEMENTS):
            if movement.get("referenceType") != SourceKind.RETURN.value:
                continue
            rid = movement.get("referenceId")
            if rid in (None, ""):
                continue
            rid = str(rid)
            if rid not in return_ids and rid not in orphaned:
                orphaned.append(rid)
        return orphaned

    def _rollup_issues(self) -> List[Issue]:
        installment_owners = {
            str(i.get("customerId"))
            for i in read_collection(self._store, INSTALLMENTS)
            if i.get("customerId") not in (None, "")
            and not SOURCE_KINDS[SourceKind.INSTALLMENT].is_terminal(i)
        }
        issues = []
        for customer in read_collection(self._store, CUSTOMERS):
            cid = record_id(customer)
            if cid is None:
                continue
            flagged = customer.get("hasInstallments")
            if flagged is True and cid not in installment_owners:
                issues.append(Issue(
                    code=IssueCode.ROLLUP_MISMATCH,
                    message=f"Customer '{cid}' is flagged hasInstallments but has no installments.",
                    record_id=cid,
                    kind="customer",
                ))
            elif flagged is False and cid in installment_owners:
                issues.append(Issue(
                    code=IssueCode.ROLLUP_MISMATCH,
                    message=f"Customer '{cid}' has installments but is flagged hasInstallments=false.",
                    record_id=cid,
                    kind="customer",
                ))
        return issues

    def _owner_link_issues(self) -> List[Issue]:
        owner_ids: Dict[str, Set[str]] = {}
        issues = []
        for spec in LINK_SPECS.values():
            for record in read_collection(self._store, spec.store_key):
                link = spec.current_link(record)
                if link is None:
                    continue
                owner_type, owner_id = link
                if owner_type.store_key not in owner_ids:
                    owner_ids[owner_type.store_key] = {
                        rid for rid in (record_id(o) for o in read_collection(self._store, owner_type.store_key))
                        if rid is not None
                    }
                if owner_id not in owner_ids[owner_type.store_key]:
                    issues.append(Issue(
                        code=IssueCode.DANGLING_OWNER_LINK,
                        message=(
                            f"{spec.kind} '{record_id(record) or '?'}' links to missing "
                            f"{owner_type.value} '{owner_id}'."
                        ),
                        record_id=record_id(record),
                        kind=spec.kind,
                    ))
        return issues

    def _journal_removal(self, entry: LedgerEntry, reason: str) -> None:
        if self._journal is not None:
            self._journal.record([entry], reason)
