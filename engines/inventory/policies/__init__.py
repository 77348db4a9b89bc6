"""
RBO Inventory Engine — Stock Policies
=======================================
Pure functions over product rows. Stock is never negative.
"""

from __future__ import annotations

import math
from typing import Any, Mapping


def stock_of(product: Mapping[str, Any]) -> float:
    value = product.get("stock", 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return value


def min_stock_of(product: Mapping[str, Any]) -> float:
    value = product.get("minStock", 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return value


def apply_stock_delta(current: float, delta: float) -> float:
    """New stock after a signed movement, floored at zero."""
    return max(0, current + delta)


def is_out_of_stock(product: Mapping[str, Any]) -> bool:
    return stock_of(product) <= 0


def is_low_stock(product: Mapping[str, Any]) -> bool:
    """At or below the reorder level but not yet empty."""
    stock = stock_of(product)
    return 0 < stock <= min_stock_of(product)
