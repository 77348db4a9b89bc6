"""
RBO Ledger Store — Indexed, Serialized Cash-Flow Log
======================================================
Sole writer of the `cash_flow_transactions` collection inside a process.

Rules:
- At most one entry per reference key. append_if_absent() holds one
  exclusive section around check-then-append, so two concurrent passes
  can never both post the same record.
- Entries are indexed by reference key: existence checks are O(1).
- Every change is a read-modify-write under the lock: the collection
  is re-read first, so rows added by other layers since the last read
  (manual adjustments, another process) are kept. A failed write rolls
  the in-memory state back and re-raises.
- Rows that do not parse as LedgerEntry (legacy or manual rows written
  by other layers) are kept verbatim and written back unchanged.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from core.primitives.ledger import LedgerEntry, ReferenceKey
from core.store import CASH_FLOW_TRANSACTIONS, KeyValueStore, read_collection
from core.time import TimeWindow, parse_record_date

logger = logging.getLogger("rbo.ledger")

Row = Union[LedgerEntry, Dict[str, Any]]


class LedgerStore:
    """
    In-process view of the unified ledger.

    Reads serve the last loaded state; batch passes call reload() first.
    Writes always start from the stored collection.
    """

    def __init__(self, store: KeyValueStore, key: str = CASH_FLOW_TRANSACTIONS) -> None:
        self._store = store
        self._key = key
        self._lock = threading.RLock()
        self._rows: List[Row] = []
        self._index: Dict[ReferenceKey, List[LedgerEntry]] = {}
        self._loaded = False

    # ── loading ───────────────────────────────────────────────

    def reload(self) -> int:
        """Re-read the collection and rebuild the index. Returns entry count."""
        with self._lock:
            count, opaque = self._load()
            if opaque:
                logger.warning(f"Ledger holds {opaque} unparseable rows; kept verbatim.")
            return count

    def _load(self) -> Tuple[int, int]:
        with self._lock:
            raw_rows = read_collection(self._store, self._key)
            rows: List[Row] = []
            index: Dict[ReferenceKey, List[LedgerEntry]] = {}
            opaque = 0
            for raw in raw_rows:
                try:
                    entry = LedgerEntry.from_dict(raw)
                except (KeyError, TypeError, ValueError):
                    rows.append(raw)
                    opaque += 1
                    continue
                rows.append(entry)
                if entry.reference is not None:
                    index.setdefault(entry.reference, []).append(entry)
            self._rows = rows
            self._index = index
            self._loaded = True
            return len(rows) - opaque, opaque

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.reload()

    def _flush(self) -> None:
        payload = [
            row.to_dict() if isinstance(row, LedgerEntry) else row
            for row in self._rows
        ]
        self._store.set(self._key, payload)

    # ── writes ────────────────────────────────────────────────

    def append_if_absent(self, entry: LedgerEntry) -> bool:
        """
        Append entry unless its reference key already has one.

        Returns True when appended, False when the key was taken
        (a duplicate attempt, which callers treat as success).
        """
        if entry.reference is None:
            raise ValueError("append_if_absent requires an entry with a reference key.")
        with self._lock:
            self._load()
            if self._index.get(entry.reference):
                return False
            self._rows.append(entry)
            self._index[entry.reference] = [entry]
            try:
                self._flush()
            except Exception:
                self._rows.pop()
                del self._index[entry.reference]
                raise
            logger.debug(f"Posted {entry.entry_id} for {entry.reference}")
            return True

    def remove_by_reference(self, reference: ReferenceKey) -> List[LedgerEntry]:
        """Remove every entry carrying reference. Returns what was removed."""
        with self._lock:
            self._load()
            removed = self._index.get(reference)
            if not removed:
                return []
            removed_ids = {id(e) for e in removed}
            previous_rows = self._rows
            self._rows = [r for r in previous_rows if id(r) not in removed_ids]
            del self._index[reference]
            try:
                self._flush()
            except Exception:
                self._rows = previous_rows
                self._index[reference] = removed
                raise
            return list(removed)

    def remove_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        """Remove a single entry by id."""
        with self._lock:
            self._load()
            target = next(
                (r for r in self._rows if isinstance(r, LedgerEntry) and r.entry_id == entry_id),
                None,
            )
            if target is None:
                return None
            previous_rows = self._rows
            previous_bucket = None
            self._rows = [r for r in previous_rows if r is not target]
            if target.reference is not None:
                previous_bucket = self._index.get(target.reference, [])
                remaining = [e for e in previous_bucket if e is not target]
                if remaining:
                    self._index[target.reference] = remaining
                else:
                    self._index.pop(target.reference, None)
            try:
                self._flush()
            except Exception:
                self._rows = previous_rows
                if target.reference is not None:
                    self._index[target.reference] = previous_bucket
                raise
            return target

    # ── reads ─────────────────────────────────────────────────

    def find(self, reference: ReferenceKey) -> Optional[LedgerEntry]:
        with self._lock:
            self._ensure_loaded()
            bucket = self._index.get(reference)
            return bucket[0] if bucket else None

    def find_all(self, reference: ReferenceKey) -> List[LedgerEntry]:
        with self._lock:
            self._ensure_loaded()
            return list(self._index.get(reference, []))

    def contains(self, reference: ReferenceKey) -> bool:
        return self.find(reference) is not None

    def entries(self) -> List[LedgerEntry]:
        with self._lock:
            self._ensure_loaded()
            return [r for r in self._rows if isinstance(r, LedgerEntry)]

    def unparsed_rows(self) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_loaded()
            return [dict(r) for r in self._rows if not isinstance(r, LedgerEntry)]

    def references(self) -> Dict[ReferenceKey, int]:
        """Entry count per reference key."""
        with self._lock:
            self._ensure_loaded()
            return {ref: len(bucket) for ref, bucket in self._index.items()}

    def by_date_range(self, start: datetime, end: datetime) -> List[LedgerEntry]:
        """Entries whose business date falls in [start, end]. Naive bounds are UTC."""
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        window = TimeWindow(start=start, end=end)
        result = []
        for entry in self.entries():
            when = parse_record_date(entry.date)
            if when is not None and window.contains(when):
                result.append(entry)
        return result

    def __len__(self) -> int:
        return len(self.entries())
