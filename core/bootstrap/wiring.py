"""
RBO Bootstrap — Wiring
========================
build_services() constructs the whole engine graph:

    store ─┬─ LedgerStore ─┬─ PostingEngine ── ReversalEngine
           │               ├─ IntegrityAuditor
           │               └─ LedgerReadModel ── AccountBalanceProjection
           ├─ InventoryService ── AlertScanner
           ├─ CrossLinkResolver
           └─ PayrollSummaryService ── OwnerRollupProjection

Every engine shares one LedgerStore so the posting lock and the
reference index cover all writers in the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from core.config import SyncConfig, load_sync_config
from core.ledger import LedgerStore, ReversalJournal
from core.primitives.alert import Alert
from core.store import InMemoryKeyValueStore, KeyValueStore
from core.time import Clock, SystemClock
from engines.alerts.services import AlertScanner
from engines.hr.services import PayrollSummaryService, StoreEmployeeFinancials
from engines.integrity.services import IntegrityAuditor
from engines.inventory.services import InventoryService
from engines.linking.services import CrossLinkResolver
from engines.posting.services import PostingEngine
from engines.reversal.services import ReversalEngine
from engines.sync.services import SyncCoordinator, SyncReport
from projections.finance import AccountBalanceProjection, LedgerReadModel
from projections.rollups import OwnerRollupProjection

logger = logging.getLogger("rbo.sync")


@dataclass(frozen=True)
class LedgerSyncServices:
    config: SyncConfig
    store: KeyValueStore
    clock: Clock
    ledger: LedgerStore
    journal: Optional[ReversalJournal]
    inventory: InventoryService
    posting: PostingEngine
    reversal: ReversalEngine
    resolver: CrossLinkResolver
    payroll: PayrollSummaryService
    rollups: OwnerRollupProjection
    auditor: IntegrityAuditor
    scanner: AlertScanner
    read_model: LedgerReadModel
    coordinator: SyncCoordinator

    def sync_all(self, parallel: Optional[bool] = None) -> SyncReport:
        if parallel is None:
            parallel = self.config.parallel_sync
        return self.coordinator.sync_all(parallel=parallel)

    def scan(self) -> List[Alert]:
        return self.scanner.scan(self.config.alert_rules)


def _default_store(config: SyncConfig) -> KeyValueStore:
    if config.store_backend == "django":
        from adapters.django_store.store import DjangoKeyValueStore

        return DjangoKeyValueStore()
    return InMemoryKeyValueStore()


def build_services(
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
    config: Optional[SyncConfig] = None,
) -> LedgerSyncServices:
    config = config or load_sync_config()
    store = store if store is not None else _default_store(config)
    clock = clock or SystemClock()

    ledger = LedgerStore(store)
    journal = ReversalJournal(store, clock) if config.journal_reversals else None
    inventory = InventoryService(store, clock)
    posting = PostingEngine(store, ledger, inventory, clock)
    reversal = ReversalEngine(store, ledger, inventory, posting, journal)
    resolver = CrossLinkResolver(store)
    payroll = PayrollSummaryService(store, StoreEmployeeFinancials(store))
    rollups = OwnerRollupProjection(store, payroll)
    read_model = LedgerReadModel(store, ledger)
    coordinator = SyncCoordinator(
        ledger, posting, reversal, resolver, rollups, max_workers=config.max_workers,
        balance=AccountBalanceProjection(store, read_model, clock),
    )
    logger.debug(f"Services built on {type(store).__name__} (backend={config.store_backend})")
    return LedgerSyncServices(
        config=config,
        store=store,
        clock=clock,
        ledger=ledger,
        journal=journal,
        inventory=inventory,
        posting=posting,
        reversal=reversal,
        resolver=resolver,
        payroll=payroll,
        rollups=rollups,
        auditor=IntegrityAuditor(store, ledger, journal, inventory),
        scanner=AlertScanner(store, inventory, clock),
        read_model=read_model,
        coordinator=coordinator,
    )
