from __future__ import annotations

import re
import sys
from collections.abc import Sequence
from typing import TypeVar

from .models import BudgetRange, Shop

S = TypeVar("S", bound=Shop)

MAX_BUDGET = sys.maxsize

# HotPepper dinner budget codes and the yen range each one covers.
BUDGET_CODE_RANGES: list[tuple[str, int, int]] = [
    ("B001", 0, 500),
    ("B002", 501, 1000),
    ("B003", 1001, 1500),
    ("B004", 1501, 2000),
    ("B005", 2001, 3000),
    ("B006", 3001, 4000),
    ("B007", 4001, 5000),
    ("B008", 5001, 7000),
    ("B009", 7001, 10000),
    ("B010", 10001, 15000),
]

_RANGE_MARKS = ("～", "〜", "~")


def normalize_budget_range(
    min_budget: int | float | None = None,
    max_budget: int | float | None = None,
) -> BudgetRange | None:
    """Build a range from optional bounds, swapping them when inverted."""
    if min_budget is None and max_budget is None:
        return None
    low = int(min_budget) if min_budget is not None else 0
    high = int(max_budget) if max_budget is not None else MAX_BUDGET
    if low > high:
        low, high = high, low
    return BudgetRange(min=low, max=high)


def get_budget_codes_for_range(budget_range: BudgetRange | None) -> list[str]:
    if budget_range is None:
        return []
    return [
        code
        for code, low, high in BUDGET_CODE_RANGES
        if high >= budget_range.min and low <= budget_range.max
    ]


def parse_budget_name(name: str) -> BudgetRange | None:
    """Parse a display budget such as ``"2001～3000円"`` or ``"～1000円"``."""
    normalized = re.sub(r"[,\s]", "", name)
    numbers = [int(n) for n in re.findall(r"\d+", normalized)]
    if not numbers:
        return None

    if len(numbers) >= 2:
        return BudgetRange(min=numbers[0], max=numbers[1])

    if any(mark in normalized for mark in _RANGE_MARKS):
        if normalized.startswith(_RANGE_MARKS):
            return BudgetRange(min=0, max=numbers[0])
        if normalized.endswith(_RANGE_MARKS):
            return BudgetRange(min=numbers[0], max=MAX_BUDGET)

    return BudgetRange(min=numbers[0], max=numbers[0])


def filter_shops_by_budget_range(shops: Sequence[S], budget_range: BudgetRange | None) -> list[S]:
    """Keep shops whose budget overlaps *budget_range*; unknown budgets are kept."""
    if budget_range is None:
        return list(shops)
    kept: list[S] = []
    for shop in shops:
        name = shop.budget.name if shop.budget else None
        parsed = parse_budget_name(name) if name else None
        if parsed is None or (parsed.max >= budget_range.min and parsed.min <= budget_range.max):
            kept.append(shop)
    return kept
