"""
RBO Ledger — Reversal Journal
===============================
Append-only record of every posting the engines removed, with the
reason and the moment of removal. The ledger itself only ever holds
live postings; this journal keeps the history of what was undone.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List

from core.primitives.ledger import LedgerEntry
from core.store import LEDGER_REVERSALS, KeyValueStore, read_collection
from core.time import Clock, to_timestamp_string


class ReversalReason:
    STATUS_REGRESSED = "status_regressed"
    RECORD_DELETED = "record_deleted"
    DANGLING_REFERENCE = "dangling_reference"
    DUPLICATE_POSTING = "duplicate_posting"


class ReversalJournal:
    """Writes go through a read-append-write under one lock."""

    def __init__(self, store: KeyValueStore, clock: Clock, key: str = LEDGER_REVERSALS) -> None:
        self._store = store
        self._clock = clock
        self._key = key
        self._lock = threading.Lock()

    def record(self, entries: List[LedgerEntry], reason: str) -> None:
        if not entries:
            return
        stamp = to_timestamp_string(self._clock.now_utc())
        with self._lock:
            rows = read_collection(self._store, self._key)
            for entry in entries:
                rows.append({
                    "entry": entry.to_dict(),
                    "reason": reason,
                    "reversedAt": stamp,
                })
            self._store.set(self._key, rows)

    def history(self) -> List[Dict[str, Any]]:
        return read_collection(self._store, self._key)
