"""
RBO Core Ledger — Public API
==============================
The unified cash-flow ledger, its reversal journal, and the error
and issue model shared by every engine pass.
"""

from core.ledger.errors import (
    DanglingReferenceError,
    DuplicatePostingAttempt,
    LedgerSyncError,
    ResolutionAmbiguity,
    UnknownProductError,
    ValidationError,
)
from core.ledger.issues import Issue, IssueCode
from core.ledger.journal import ReversalJournal, ReversalReason
from core.ledger.store import LedgerStore

__all__ = [
    "DanglingReferenceError",
    "DuplicatePostingAttempt",
    "LedgerSyncError",
    "ResolutionAmbiguity",
    "UnknownProductError",
    "ValidationError",
    "Issue",
    "IssueCode",
    "LedgerStore",
    "ReversalJournal",
    "ReversalReason",
]
