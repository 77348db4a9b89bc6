"""
RBO Core Store — Key-Value Store Protocol
===========================================
The storage primitive is out of this package's hands: it is a
synchronous get/set by key that returns a default when the key is
absent. Implementations raise StoreUnavailableError when the
backing medium cannot be reached.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol


logger = logging.getLogger("rbo.store")


# ══════════════════════════════════════════════════════════════
# STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class KeyValueStore(Protocol):
    """Synchronous, single-process key-value store."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default when absent."""
        ...  # pragma: no cover

    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under key."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY STORE (tests / scripts / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryKeyValueStore:
    """
    Dict-backed store.

    Values are deep-copied on the way in and on the way out so callers
    can never mutate stored state through a reference they hold.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)


# ══════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════

def read_collection(store: KeyValueStore, key: str) -> List[Dict[str, Any]]:
    """
    Read a record collection, tolerating a missing or corrupt value.

    Anything that is not a list reads as empty; non-dict rows are
    dropped. Store failures propagate.
    """
    value = store.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning(f"Collection '{key}' is not a list; treating as empty.")
        return []
    rows = [row for row in value if isinstance(row, dict)]
    if len(rows) != len(value):
        logger.warning(
            f"Collection '{key}' holds {len(value) - len(rows)} non-record rows; ignored."
        )
    return rows


__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "read_collection",
]
