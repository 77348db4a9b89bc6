"""
RBO Reversal Engine — Application Service
===========================================
Undoes postings when a source record leaves its realized status or is
deleted.

Per record state machine:
    pending  --(mark paid/processed)-->  realized  --post-->  entry exists
    realized --(revert status/delete)--> pending/deleted --reverse--> entry absent
    rejected/cancelled: never any ledger effect

Reversal removes the entry (it never posts a negative counter-entry),
so reverse-then-post reproduces the original posting. For Returns the
stock restored at posting time is taken back out, floored at zero;
the restoring movements are removed with it, so a second reversal
finds nothing left to undo.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.ledger import Issue, LedgerStore, ReversalJournal, ReversalReason
from core.primitives.ledger import LedgerEntry
from core.primitives.source import (
    SourceKind,
    get_kind_spec,
    parse_source_kind,
    record_id,
)
from core.store import KeyValueStore, StoreUnavailableError, read_collection
from engines.inventory.services import InventoryPort
from engines.posting.rules import reference_keys_for
from engines.posting.services import PostingEngine

logger = logging.getLogger("rbo.reversal")


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

class TransitionAction(Enum):
    POSTED = "posted"
    REVERSED = "reversed"
    NONE = "none"


@dataclass(frozen=True)
class TransitionOutcome:
    action: TransitionAction
    record_id: Optional[str]
    entries: Tuple[LedgerEntry, ...] = ()
    issues: Tuple[Issue, ...] = ()


@dataclass(frozen=True)
class ReconcileResult:
    kind: SourceKind
    reversed: int = 0
    entries_removed: int = 0
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reversed": self.reversed,
            "entries_removed": self.entries_removed,
            "fatal_error": self.fatal_error,
        }


# ══════════════════════════════════════════════════════════════
# REVERSAL ENGINE
# ══════════════════════════════════════════════════════════════

class ReversalEngine:
    def __init__(
        self,
        store: KeyValueStore,
        ledger: LedgerStore,
        inventory: InventoryPort,
        posting: PostingEngine,
        journal: Optional[ReversalJournal] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._inventory = inventory
        self._posting = posting
        self._journal = journal

    def reverse(
        self,
        record: Mapping[str, Any],
        kind,
        reason: str = ReversalReason.STATUS_REGRESSED,
    ) -> bool:
        """
        Remove every posting the record owns and undo its side effects.

        Returns True when at least one ledger entry was removed.
        Store failures propagate.
        """
        return bool(self._reverse(record, parse_source_kind(kind), reason))

    def _reverse(self, record: Mapping[str, Any], kind: SourceKind, reason: str) -> List[LedgerEntry]:
        removed = self._remove_postings(record, kind)
        rid = record_id(record)
        if kind == SourceKind.RETURN and rid is not None:
            movements = self._inventory.remove_movements(rid, SourceKind.RETURN.value)
            if movements:
                logger.info(f"Return {rid}: reverted {len(movements)} stock movements")
        if removed:
            if self._journal is not None:
                self._journal.record(removed, reason)
            logger.info(f"Reversed {kind.value} {rid}: {len(removed)} entries removed ({reason})")
        return removed

    def handle_status_change(
        self,
        kind,
        before: Optional[Mapping[str, Any]],
        after: Mapping[str, Any],
    ) -> TransitionOutcome:
        """
        Apply the state machine to one status change.

        Entering the realized status posts; leaving it reverses; staying
        realized re-posts idempotently (picks up new installment
        payments); anything else is a no-op.
        """
        kind = parse_source_kind(kind)
        spec = get_kind_spec(kind)
        was_realized = before is not None and spec.is_realized(before)
        is_realized = spec.is_realized(after)
        rid = record_id(after)

        if is_realized:
            outcome = self._posting.post_record(after, kind)
            action = TransitionAction.POSTED if outcome.posted else TransitionAction.NONE
            return TransitionOutcome(
                action=action, record_id=rid, entries=outcome.posted, issues=outcome.issues,
            )
        removed = self._reverse(after, kind, ReversalReason.STATUS_REGRESSED)
        if removed:
            return TransitionOutcome(
                action=TransitionAction.REVERSED, record_id=rid, entries=tuple(removed),
            )
        if was_realized:
            logger.warning(f"{kind.value} {rid} left realized status with nothing posted")
        return TransitionOutcome(action=TransitionAction.NONE, record_id=rid)

    def handle_deleted(self, record: Mapping[str, Any], kind) -> bool:
        return self.reverse(record, kind, ReversalReason.RECORD_DELETED)

    def reconcile(self, kind, refresh: bool = True) -> ReconcileResult:
        """
        Reverse postings whose source record still exists but is no
        longer realized (status regressed without a hook call).
        """
        kind = parse_source_kind(kind)
        spec = get_kind_spec(kind)
        reversed_count = 0
        removed_total = 0
        try:
            if refresh:
                self._ledger.reload()
            for record in read_collection(self._store, spec.store_key):
                if spec.is_realized(record) or not self._owns_postings(record, kind):
                    continue
                removed = self._reverse(record, kind, ReversalReason.STATUS_REGRESSED)
                if removed:
                    reversed_count += 1
                    removed_total += len(removed)
        except StoreUnavailableError as exc:
            logger.error(f"reconcile({kind.value}) aborted: {exc}")
            return ReconcileResult(
                kind=kind, reversed=reversed_count, entries_removed=removed_total,
                fatal_error=str(exc),
            )
        if reversed_count:
            logger.info(f"reconcile({kind.value}): {reversed_count} records reversed")
        return ReconcileResult(kind=kind, reversed=reversed_count, entries_removed=removed_total)

    # ── internals ─────────────────────────────────────────────

    def _owns_postings(self, record: Mapping[str, Any], kind: SourceKind) -> bool:
        return any(self._ledger.contains(key) for key in reference_keys_for(record, kind))

    def _remove_postings(self, record: Mapping[str, Any], kind: SourceKind) -> List[LedgerEntry]:
        removed: List[LedgerEntry] = []
        for key in reference_keys_for(record, kind):
            removed.extend(self._ledger.remove_by_reference(key))
        return removed
