"""
RBO Core Primitives — Shared Building Blocks
==============================================
Pure Python, immutable value types shared by every engine.

Primitives:
    ledger  — LedgerEntry, reference key, direction/category/channel enums
    source  — source record kinds and their realized/terminal statuses
    alert   — derived threshold notifications
"""

from core.primitives.alert import Alert, Severity
from core.primitives.ledger import (
    LedgerCategory,
    LedgerDirection,
    LedgerEntry,
    PaymentChannel,
    ReferenceKey,
)
from core.primitives.source import (
    SOURCE_KINDS,
    SourceKind,
    SourceKindSpec,
    get_kind_spec,
    iter_payments,
    parse_source_kind,
    record_id,
)

__all__ = [
    "Alert",
    "Severity",
    "LedgerCategory",
    "LedgerDirection",
    "LedgerEntry",
    "PaymentChannel",
    "ReferenceKey",
    "SOURCE_KINDS",
    "SourceKind",
    "SourceKindSpec",
    "get_kind_spec",
    "iter_payments",
    "parse_source_kind",
    "record_id",
]
