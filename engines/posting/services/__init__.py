"""
RBO Posting Engine — Application Service
==========================================
Projects realized source records into the unified ledger, exactly
once per reference key.

Flow per record:
1. Skip unless the record's status is the kind's realized status
2. Build entries (pure, may raise ValidationError)
3. append_if_absent() each entry (check-then-append is atomic)
4. For a posted Return (new or already in the ledger), restore stock
   for every line item that has no movement recorded yet

A cashed check that already carries a legacy manual row with its id
(referenceType "manual", referenceId = check id) counts as posted.

A bad record is skipped and reported; the pass goes on. Only a store
failure ends a pass, reported as the result's fatal_error.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.ledger import Issue, IssueCode, LedgerStore, LedgerSyncError
from core.primitives.ledger import LedgerEntry, ReferenceKey
from core.primitives.source import (
    SourceKind,
    get_kind_spec,
    parse_source_kind,
    record_id,
)
from core.store import KeyValueStore, StoreUnavailableError, read_collection
from core.time import Clock
from engines.inventory.services import InventoryPort
from engines.posting.policies import parse_amount
from engines.posting.rules import build_entries

logger = logging.getLogger("rbo.posting")

# Older writers stored cashed checks under this referenceType.
LEGACY_CHECK_REFERENCE_TYPE = "manual"


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PostingOutcome:
    """What happened to one record."""

    record_id: Optional[str]
    realized: bool = True
    posted: Tuple[LedgerEntry, ...] = ()
    duplicates: int = 0
    issues: Tuple[Issue, ...] = ()

    @property
    def failed(self) -> bool:
        return any(i.code == IssueCode.INVALID_RECORD for i in self.issues)


@dataclass(frozen=True)
class PostingResult:
    """
    Summary of one post_all pass.

    posted counts new ledger entries; skipped counts realized records
    that could not be posted; already_posted counts entries whose key
    was already taken.
    """

    kind: SourceKind
    posted: int = 0
    skipped: int = 0
    already_posted: int = 0
    issues: Tuple[Issue, ...] = ()
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None

    def summary(self) -> str:
        text = f"{self.posted} posted, {self.skipped} skipped"
        if self.issues:
            text += ": " + "; ".join(str(i) for i in self.issues)
        if self.fatal_error:
            text += f" (aborted: {self.fatal_error})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "posted": self.posted,
            "skipped": self.skipped,
            "already_posted": self.already_posted,
            "issues": [i.to_dict() for i in self.issues],
            "fatal_error": self.fatal_error,
        }


@dataclass
class _Tally:
    posted: int = 0
    skipped: int = 0
    already_posted: int = 0
    issues: List[Issue] = field(default_factory=list)

    def add(self, outcome: PostingOutcome) -> None:
        self.posted += len(outcome.posted)
        self.already_posted += outcome.duplicates
        self.issues.extend(outcome.issues)
        if outcome.failed:
            self.skipped += 1

    def result(self, kind: SourceKind, fatal_error: Optional[str] = None) -> PostingResult:
        return PostingResult(
            kind=kind,
            posted=self.posted,
            skipped=self.skipped,
            already_posted=self.already_posted,
            issues=tuple(self.issues),
            fatal_error=fatal_error,
        )


# ══════════════════════════════════════════════════════════════
# POSTING ENGINE
# ══════════════════════════════════════════════════════════════

class PostingEngine:
    def __init__(
        self,
        store: KeyValueStore,
        ledger: LedgerStore,
        inventory: InventoryPort,
        clock: Clock,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._inventory = inventory
        self._clock = clock

    def post_all(self, kind, refresh: bool = True) -> PostingResult:
        """
        Post every realized record of kind. Safe to repeat and safe to
        run for different kinds in any order or concurrently.
        """
        kind = parse_source_kind(kind)
        spec = get_kind_spec(kind)
        tally = _Tally()
        try:
            if refresh:
                self._ledger.reload()
            records = read_collection(self._store, spec.store_key)
            for record in records:
                if not spec.is_realized(record):
                    continue
                outcome = self._post(record, kind)
                tally.add(outcome)
                tally.issues.extend(self._side_effects(record, kind, outcome))
        except StoreUnavailableError as exc:
            logger.error(f"post_all({kind.value}) aborted: {exc}")
            return tally.result(kind, fatal_error=str(exc))

        result = tally.result(kind)
        logger.info(f"post_all({kind.value}): {result.summary()}")
        return result

    def post_kinds(self, kinds: Iterable[Any]) -> Dict[SourceKind, PostingResult]:
        results = {}
        for position, kind in enumerate(kinds):
            kind = parse_source_kind(kind)
            results[kind] = self.post_all(kind, refresh=position == 0)
        return results

    def post_record(self, record: Mapping[str, Any], kind) -> PostingOutcome:
        """
        Post a single record (e.g. right after it was marked paid).

        Non-realized records are a no-op. Store failures propagate.
        """
        kind = parse_source_kind(kind)
        if not get_kind_spec(kind).is_realized(record):
            return PostingOutcome(record_id=record_id(record), realized=False)
        outcome = self._post(record, kind)
        side_effect_issues = self._side_effects(record, kind, outcome)
        if side_effect_issues:
            outcome = replace(outcome, issues=outcome.issues + tuple(side_effect_issues))
        return outcome

    # ── internals ─────────────────────────────────────────────

    def _post(self, record: Mapping[str, Any], kind: SourceKind) -> PostingOutcome:
        rid = record_id(record)
        try:
            entries = build_entries(record, kind, self._clock.now_utc())
        except LedgerSyncError as exc:
            logger.warning(f"Skipped {kind.value} {rid}: {exc}")
            return PostingOutcome(record_id=rid, issues=(Issue.from_error(exc),))

        if kind == SourceKind.CHECK and self._ledger.contains(ReferenceKey(rid, LEGACY_CHECK_REFERENCE_TYPE)):
            logger.info(f"Check {rid} already carried by a manual ledger row; not posted again")
            return PostingOutcome(record_id=rid, duplicates=len(entries))

        posted: List[LedgerEntry] = []
        duplicates = 0
        for entry in entries:
            if self._ledger.append_if_absent(entry):
                posted.append(entry)
            else:
                duplicates += 1

        return PostingOutcome(record_id=rid, posted=tuple(posted), duplicates=duplicates)

    def _side_effects(
        self, record: Mapping[str, Any], kind: SourceKind, outcome: PostingOutcome,
    ) -> List[Issue]:
        """Side effects of a record whose entries are in the ledger, new or not."""
        if kind != SourceKind.RETURN or outcome.record_id is None:
            return []
        if not outcome.posted and not outcome.duplicates:
            return []
        return self._restore_stock(record, outcome.record_id)

    def _restore_stock(self, record: Mapping[str, Any], rid: str) -> List[Issue]:
        """
        Add back to stock every line item that has no movement recorded
        for this return yet. A pass that stopped halfway finishes the
        remaining items on the next run. Item failures are reported, not
        raised.
        """
        recorded = Counter(
            str(m.get("productId"))
            for m in self._inventory.movements_for(rid, SourceKind.RETURN.value)
        )
        issues = []
        for item in record.get("items") or []:
            product_id = str(item["productId"])
            if recorded[product_id] > 0:
                recorded[product_id] -= 1
                continue
            quantity = parse_amount(item.get("quantity")) or 0
            value = parse_amount(item.get("total"))
            if value is None:
                value = (parse_amount(item.get("unitPrice")) or 0) * quantity
            try:
                self._inventory.add_stock_movement(
                    product_id,
                    quantity,
                    value,
                    rid,
                    reference_type=SourceKind.RETURN.value,
                    product_name=item.get("productName"),
                )
            except LedgerSyncError as exc:
                logger.warning(f"Return {rid}: stock not restored: {exc}")
                issues.append(Issue(
                    code=IssueCode.SIDE_EFFECT_FAILED,
                    message=str(exc),
                    record_id=rid,
                    kind=SourceKind.RETURN.value,
                ))
        return issues
