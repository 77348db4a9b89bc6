"""
RBO Posting Engine — Category Mapping
=======================================
Business expense categories (as typed in the expenses screen) map
onto the fixed ledger categories. Matching is exact and
case-sensitive; anything unmapped lands in OTHER. The raw business
category is kept as the entry's subcategory.
"""

from __future__ import annotations

from typing import Any, Dict

from core.primitives.ledger import LedgerCategory

EXPENSE_CATEGORY_MAP: Dict[str, LedgerCategory] = {
    "إيجار المحل": LedgerCategory.RENT,
    "الإيجار": LedgerCategory.RENT,
    "rent": LedgerCategory.RENT,
    "الكهرباء والمياه": LedgerCategory.UTILITIES,
    "utilities": LedgerCategory.UTILITIES,
    "رواتب الموظفين": LedgerCategory.PAYROLL,
    "الرواتب والأجور": LedgerCategory.PAYROLL,
    "salaries": LedgerCategory.PAYROLL,
    "مصاريف التسويق": LedgerCategory.MARKETING,
    "marketing": LedgerCategory.MARKETING,
}


def map_expense_category(raw: Any) -> LedgerCategory:
    if not isinstance(raw, str):
        return LedgerCategory.OTHER
    return EXPENSE_CATEGORY_MAP.get(raw, LedgerCategory.OTHER)
