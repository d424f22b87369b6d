from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..config import NG_SCORE
from .models import Comparison, VoteEntry, VoteItem


def apply_vote(existing: VoteEntry | None, score: float) -> VoteEntry:
    """Fold one score into the running aggregate for a (user, shop) pair.

    An ``NG_SCORE`` always resets the entry to a rejection, and the first
    regular score after a rejection starts a fresh aggregate.
    """
    if score == NG_SCORE:
        return VoteEntry(sum=0, count=0, last_score=score, ng=True)

    if existing is None or existing.ng:
        return VoteEntry(sum=score, count=1, last_score=score, ng=False)

    return VoteEntry(
        sum=existing.sum + score,
        count=existing.count + 1,
        last_score=score,
        ng=False,
    )


def normalize_vote(entry: Any) -> VoteEntry | None:
    """Coerce a stored vote (model, dict or bare legacy score) to a VoteEntry."""
    if entry is None:
        return None
    if isinstance(entry, VoteEntry):
        return entry
    if isinstance(entry, (int, float)):
        ng = entry == NG_SCORE
        return VoteEntry(
            sum=0 if ng else entry,
            count=0 if ng else 1,
            last_score=entry,
            ng=ng,
        )
    return VoteEntry(
        sum=entry.get("sum") or 0,
        count=entry.get("count") or 0,
        last_score=entry.get("last_score", entry.get("lastScore")) or 0,
        ng=bool(entry.get("ng")),
    )


def average_score(entry: VoteEntry | None) -> float | None:
    if entry is None or entry.ng or entry.count <= 0:
        return None
    return entry.sum / entry.count


def is_ng(entry: VoteEntry | None) -> bool:
    return bool(entry and entry.ng)


def build_comparisons(items: Sequence[VoteItem]) -> list[Comparison]:
    """Turn one 2- or 3-shop submission into pairwise outcomes."""
    comparisons: list[Comparison] = []
    for i, first in enumerate(items):
        for second in items[i + 1:]:
            first_ng = first.score == NG_SCORE
            second_ng = second.score == NG_SCORE
            if first_ng and second_ng:
                result = "tie"
            elif first_ng:
                result = "b"
            elif second_ng:
                result = "a"
            elif first.score == second.score:
                result = "tie"
            else:
                result = "a" if first.score > second.score else "b"
            comparisons.append(Comparison(a=first.shop_id, b=second.shop_id, result=result))
    return comparisons
