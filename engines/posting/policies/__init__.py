"""
RBO Posting Engine — Record Validation
========================================
Extract the fields a posting needs, or raise ValidationError naming
the first missing or malformed one. No side effects.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.ledger.errors import ValidationError
from core.primitives.source import record_id
from core.time import parse_record_date


def require_id(record: Mapping[str, Any], kind: str) -> str:
    rid = record_id(record)
    if rid is None:
        raise ValidationError(None, kind, "id")
    return rid


def parse_amount(value: Any) -> Optional[float]:
    """Numbers and numeric strings; None for anything else."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value


def require_amount(record: Mapping[str, Any], field: str, rid: Optional[str], kind: str) -> float:
    if field not in record or record.get(field) in (None, ""):
        raise ValidationError(rid, kind, field)
    amount = parse_amount(record.get(field))
    if amount is None:
        raise ValidationError(rid, kind, field, reason="malformed")
    if amount <= 0:
        raise ValidationError(rid, kind, field, reason="non-positive")
    return amount


def resolve_date(record: Mapping[str, Any], fields: Sequence[str], fallback: datetime) -> datetime:
    """First of fields that parses as a date, else fallback (the posting time)."""
    for field in fields:
        parsed = parse_record_date(record.get(field))
        if parsed is not None:
            return parsed
    return fallback


def require_line_items(record: Mapping[str, Any], rid: str, kind: str) -> List[Dict[str, Any]]:
    """
    Return line items with a product id and a positive quantity.

    A record with no items is valid (nothing to restock); a malformed
    item invalidates the whole record.
    """
    items = record.get("items")
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(rid, kind, "items", reason="malformed")
    result = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict) or not item.get("productId"):
            raise ValidationError(rid, kind, f"items[{position}].productId")
        quantity = parse_amount(item.get("quantity"))
        if quantity is None or quantity <= 0:
            raise ValidationError(rid, kind, f"items[{position}].quantity", reason="malformed")
        result.append(item)
    return result

