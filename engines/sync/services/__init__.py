"""
RBO Sync Coordinator — "Sync All" Pass
========================================
Order:
1. Resolve missing owner links (every linkable kind)
2. Reconcile: reverse postings whose records regressed out of realized
3. Post every realized record of every kind
4. Recompute owner rollups from the records
5. Store the ledger's current balance under "account_balance"

Step 3 may run one task per kind on a thread pool. Kinds share no
mutable state except the ledger, and LedgerStore serializes every
check-then-append, so the at-most-one-posting rule holds under any
interleaving. The whole pass is idempotent and can be re-run after a
partial failure.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.ledger import LedgerStore
from core.primitives.source import SourceKind
from core.store import StoreUnavailableError
from engines.linking.services import CrossLinkResolver, LinkResult
from engines.posting.services import PostingEngine, PostingResult
from engines.reversal.services import ReconcileResult, ReversalEngine
from projections.finance import AccountBalanceProjection
from projections.rollups import OwnerRollupProjection, RollupResult

logger = logging.getLogger("rbo.sync")


@dataclass(frozen=True)
class SyncReport:
    links: Dict[str, LinkResult] = field(default_factory=dict)
    reconciled: Dict[SourceKind, ReconcileResult] = field(default_factory=dict)
    postings: Dict[SourceKind, PostingResult] = field(default_factory=dict)
    rollups: Optional[RollupResult] = None
    account_balance: Optional[float] = None
    fatal_error: Optional[str] = None

    @property
    def posted(self) -> int:
        return sum(r.posted for r in self.postings.values())

    @property
    def skipped(self) -> int:
        return sum(r.skipped for r in self.postings.values())

    @property
    def reversed(self) -> int:
        return sum(r.reversed for r in self.reconciled.values())

    @property
    def linked(self) -> int:
        return sum(r.linked for r in self.links.values())

    @property
    def success(self) -> bool:
        if self.fatal_error is not None:
            return False
        passes = [*self.links.values(), *self.reconciled.values(), *self.postings.values()]
        if self.rollups is not None:
            passes.append(self.rollups)
        return all(p.success for p in passes)

    def summary(self) -> str:
        return (
            f"{self.posted} posted, {self.skipped} skipped, "
            f"{self.reversed} reversed, {self.linked} linked"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "success": self.success,
            "fatal_error": self.fatal_error,
            "links": {k: r.to_dict() for k, r in self.links.items()},
            "reconciled": {k.value: r.to_dict() for k, r in self.reconciled.items()},
            "postings": {k.value: r.to_dict() for k, r in self.postings.items()},
            "rollups": self.rollups.to_dict() if self.rollups else None,
            "account_balance": self.account_balance,
        }


class SyncCoordinator:
    def __init__(
        self,
        ledger: LedgerStore,
        posting: PostingEngine,
        reversal: ReversalEngine,
        resolver: CrossLinkResolver,
        rollups: OwnerRollupProjection,
        max_workers: int = 4,
        balance: Optional[AccountBalanceProjection] = None,
    ) -> None:
        self._ledger = ledger
        self._posting = posting
        self._reversal = reversal
        self._resolver = resolver
        self._rollups = rollups
        self._max_workers = max_workers
        self._balance = balance

    def sync_all(self, parallel: bool = False) -> SyncReport:
        links = self._resolver.resolve_all()
        try:
            self._ledger.reload()
        except StoreUnavailableError as exc:
            logger.error(f"sync_all aborted: {exc}")
            return SyncReport(links=links, fatal_error=str(exc))

        reconciled = {
            kind: self._reversal.reconcile(kind, refresh=False) for kind in SourceKind
        }
        if parallel:
            with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="rbo-post") as pool:
                futures = {
                    kind: pool.submit(self._posting.post_all, kind, False) for kind in SourceKind
                }
                postings = {kind: future.result() for kind, future in futures.items()}
        else:
            postings = {kind: self._posting.post_all(kind, refresh=False) for kind in SourceKind}

        rollups = self._rollups.recompute()
        account_balance = None
        fatal_error = None
        if self._balance is not None:
            try:
                account_balance = self._balance.refresh()
            except StoreUnavailableError as exc:
                logger.error(f"account balance not stored: {exc}")
                fatal_error = str(exc)
        report = SyncReport(
            links=links, reconciled=reconciled, postings=postings, rollups=rollups,
            account_balance=account_balance, fatal_error=fatal_error,
        )
        logger.info(f"sync_all: {report.summary()}")
        return report
