"""
RBO Ledger Sync — Issue Model
===============================
Structured per-record problems accumulated by engine passes.

An issue is NOT an exception. It is an explanation structure that
ends up in a pass result so a partial sync stays actionable
("12 posted, 2 skipped: missing amount on EXP_123").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.ledger.errors import (
    DanglingReferenceError,
    LedgerSyncError,
    ResolutionAmbiguity,
    ValidationError,
)


# ══════════════════════════════════════════════════════════════
# ISSUE (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Issue:
    """
    Fields:
        code:      Machine-readable code (see IssueCode).
        message:   Human-readable explanation.
        record_id: The record or ledger entry the issue is about.
        kind:      Source kind or collection, when known.
    """

    code: str
    message: str
    record_id: Optional[str] = None
    kind: Optional[str] = None

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")
        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "record_id": self.record_id,
            "kind": self.kind,
        }

    @classmethod
    def from_error(cls, error: LedgerSyncError) -> Issue:
        if isinstance(error, ValidationError):
            return cls(IssueCode.INVALID_RECORD, str(error), error.record_id, error.kind)
        if isinstance(error, DanglingReferenceError):
            return cls(IssueCode.DANGLING_REFERENCE, str(error), error.entry_id)
        if isinstance(error, ResolutionAmbiguity):
            return cls(IssueCode.UNRESOLVED_LINK, str(error), error.record_id, error.kind)
        return cls(IssueCode.SYNC_ERROR, str(error))


# ══════════════════════════════════════════════════════════════
# STANDARD ISSUE CODES
# ══════════════════════════════════════════════════════════════

class IssueCode:
    """
    Known issue codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Posting ───────────────────────────────────────────────
    INVALID_RECORD = "INVALID_RECORD"
    SIDE_EFFECT_FAILED = "SIDE_EFFECT_FAILED"

    # ── Linking ───────────────────────────────────────────────
    UNRESOLVED_LINK = "UNRESOLVED_LINK"

    # ── Integrity ─────────────────────────────────────────────
    DANGLING_REFERENCE = "DANGLING_REFERENCE"
    DUPLICATE_POSTING = "DUPLICATE_POSTING"
    STALE_POSTING = "STALE_POSTING"
    MALFORMED_ENTRY = "MALFORMED_ENTRY"
    ROLLUP_MISMATCH = "ROLLUP_MISMATCH"
    DANGLING_OWNER_LINK = "DANGLING_OWNER_LINK"
    ORPHANED_STOCK_MOVEMENT = "ORPHANED_STOCK_MOVEMENT"
    LEGACY_CHECK_DUPLICATE = "LEGACY_CHECK_DUPLICATE"

    # ── General ───────────────────────────────────────────────
    SYNC_ERROR = "SYNC_ERROR"
