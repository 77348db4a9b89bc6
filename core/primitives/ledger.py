"""
RBO Ledger Primitive — Unified Cash-Flow Entry
================================================
The ledger is a single append-only list of postings. Every posting
derived from a business record carries a reference pair
(referenceId, referenceType) naming the exact record that caused it.

RULES (NON-NEGOTIABLE):
- The reference pair is the idempotency key: at most one entry per pair
- Entries are immutable once created (removed, never edited in place)
- Amounts are non-negative; direction carries the sign
- Manual entries (no reference pair) are never touched by the engines

This file contains NO persistence logic.
Field names in to_dict()/from_dict() match the stored collection.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class LedgerDirection(Enum):
    """Money in or money out."""
    INCOME = "income"
    EXPENSE = "expense"


class LedgerCategory(Enum):
    """Fixed ledger categories. Business categories map onto these."""
    SALES = "sales"
    PURCHASES = "purchases"
    PAYROLL = "payroll"
    UTILITIES = "utilities"
    RENT = "rent"
    MARKETING = "marketing"
    OTHER = "other"


class PaymentChannel(Enum):
    CASH = "cash"
    BANK = "bank"
    CREDIT = "credit"
    CHECK = "check"


MANUAL_REFERENCE_TYPES = frozenset({"manual", "adjustment"})


# ══════════════════════════════════════════════════════════════
# REFERENCE KEY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReferenceKey:
    """Idempotency key of a posting: (referenceId, referenceType)."""

    reference_id: str
    reference_type: str

    def __post_init__(self) -> None:
        if not isinstance(self.reference_id, str) or not self.reference_id:
            raise ValueError("reference_id must be a non-empty string.")
        if not isinstance(self.reference_type, str) or not self.reference_type:
            raise ValueError("reference_type must be a non-empty string.")

    @property
    def is_manual(self) -> bool:
        return self.reference_type in MANUAL_REFERENCE_TYPES

    def __str__(self) -> str:
        return f"{self.reference_type}:{self.reference_id}"


# ══════════════════════════════════════════════════════════════
# LEDGER ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LedgerEntry:
    """
    One cash-flow posting.

    date is the business date (YYYY-MM-DD); created_at is the moment the
    posting was written. reference is None for manual entries.
    """

    entry_id: str
    date: str
    direction: LedgerDirection
    category: LedgerCategory
    amount: float
    description: str = ""
    subcategory: Optional[str] = None
    reference: Optional[ReferenceKey] = None
    payment_channel: PaymentChannel = PaymentChannel.CASH
    notes: Optional[str] = None
    created_at: str = ""
    created_by: str = "system"

    def __post_init__(self) -> None:
        if not self.entry_id:
            raise ValueError("entry_id must be non-empty.")
        if not self.date:
            raise ValueError("date must be non-empty.")
        if not isinstance(self.direction, LedgerDirection):
            raise TypeError("direction must be LedgerDirection.")
        if not isinstance(self.category, LedgerCategory):
            raise TypeError("category must be LedgerCategory.")
        if not isinstance(self.payment_channel, PaymentChannel):
            raise TypeError("payment_channel must be PaymentChannel.")
        if isinstance(self.amount, bool) or not isinstance(self.amount, (int, float)):
            raise TypeError("amount must be a number.")
        if not math.isfinite(self.amount) or self.amount < 0:
            raise ValueError(f"amount must be finite and non-negative, got {self.amount}.")

    @property
    def signed_amount(self) -> float:
        if self.direction == LedgerDirection.INCOME:
            return self.amount
        return -self.amount

    def posting_signature(self) -> Tuple[Any, ...]:
        """Everything that identifies the posting's effect, minus identity and timestamps."""
        return (
            self.reference,
            self.direction,
            self.category,
            self.subcategory,
            self.amount,
            self.payment_channel,
            self.date,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.entry_id,
            "date": self.date,
            "type": self.direction.value,
            "category": self.category.value,
            "amount": self.amount,
            "description": self.description,
            "paymentMethod": self.payment_channel.value,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
        }
        if self.subcategory is not None:
            data["subcategory"] = self.subcategory
        if self.reference is not None:
            data["referenceId"] = self.reference.reference_id
            data["referenceType"] = self.reference.reference_type
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LedgerEntry:
        """Parse a stored row. Raises ValueError/TypeError/KeyError when malformed."""
        reference = None
        if data.get("referenceId") and data.get("referenceType"):
            reference = ReferenceKey(
                reference_id=str(data["referenceId"]),
                reference_type=str(data["referenceType"]),
            )
        return cls(
            entry_id=str(data["id"]),
            date=str(data["date"]),
            direction=LedgerDirection(data["type"]),
            category=LedgerCategory(data.get("category", "other")),
            amount=data["amount"],
            description=str(data.get("description", "")),
            subcategory=data.get("subcategory"),
            reference=reference,
            payment_channel=PaymentChannel(data.get("paymentMethod", "cash")),
            notes=data.get("notes"),
            created_at=str(data.get("createdAt", "")),
            created_by=str(data.get("createdBy", "system")),
        )
