"""
RBO Ledger Sync — Errors
==========================
Per-record problems raised inside engines. Engine passes catch these
and turn them into Issue values; they never escape a batch pass.
Only StoreUnavailableError (core.store.errors) ends a pass.
"""

from __future__ import annotations

from typing import Optional


class LedgerSyncError(Exception):
    """Base error for ledger synchronization."""
    pass


class ValidationError(LedgerSyncError):
    """A source record lacks a field required for posting."""

    def __init__(self, record_id: Optional[str], kind: str, field: str, reason: str = "missing"):
        self.record_id = record_id
        self.kind = kind
        self.field = field
        self.reason = reason
        super().__init__(
            f"{kind} '{record_id or '?'}': {reason} {field}."
        )


class DuplicatePostingAttempt(LedgerSyncError):
    """The idempotency key already has a ledger entry. Callers treat this as success."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Ledger already holds an entry for '{reference}'.")


class DanglingReferenceError(LedgerSyncError):
    """A ledger entry references a source record that no longer exists."""

    def __init__(self, reference: str, entry_id: str):
        self.reference = reference
        self.entry_id = entry_id
        super().__init__(
            f"Ledger entry '{entry_id}' references missing record '{reference}'."
        )


class ResolutionAmbiguity(LedgerSyncError):
    """No exact owner match for a record. The link stays unresolved."""

    def __init__(self, kind: str, record_id: Optional[str], name: Optional[str]):
        self.kind = kind
        self.record_id = record_id
        self.name = name
        super().__init__(
            f"{kind} '{record_id or '?'}': no owner matches name '{name or ''}'."
        )


class UnknownProductError(LedgerSyncError):
    """A stock movement names a product that is not in the catalog."""

    def __init__(self, product_id: str, reference_id: Optional[str] = None):
        self.product_id = product_id
        self.reference_id = reference_id
        super().__init__(
            f"Product '{product_id}' not found"
            + (f" (movement for '{reference_id}')." if reference_id else ".")
        )
