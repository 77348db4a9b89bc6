"""
RBO Alert Primitive
=====================
Alerts are derived and ephemeral: recomputed on every scan, never
persisted. The id is content-derived ("kind:subject") so one scan can
deduplicate, and two scans over the same state agree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Severity(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


@dataclass(frozen=True)
class Alert:
    """
    Threshold-based notification.

    created_at is excluded from equality so repeated scans over
    unchanged state compare equal.
    """

    id: str
    kind: str
    severity: Severity
    message: str
    reference_ids: Tuple[str, ...] = ()
    created_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Alert id must be non-empty.")
        if not self.kind:
            raise ValueError("Alert kind must be non-empty.")
        if not isinstance(self.severity, Severity):
            raise TypeError("severity must be Severity.")

    def sort_key(self) -> Tuple[int, str]:
        return (self.severity.rank, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "severity": self.severity.value,
            "message": self.message,
            "referenceIds": list(self.reference_ids),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
