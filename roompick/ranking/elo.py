from __future__ import annotations

from collections.abc import Iterable, Sequence

from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..voting.models import Comparison

Pair = tuple[str, str]


def _expected_score(rating_a: float, rating_b: float) -> float:
    return 1 / (1 + 10 ** ((rating_b - rating_a) / 400))


def pair_key(a: str, b: str) -> Pair:
    """Order-independent key for an unordered pair."""
    return (a, b) if a < b else (b, a)


def compute_ratings(
    shop_ids: Iterable[str],
    comparisons: Sequence[Comparison],
    excluded_ids: set[str] | frozenset[str] = frozenset(),
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> dict[str, float]:
    """Replay *comparisons* in recorded order starting every shop at the base rating.

    Excluded shops get no entry and any comparison touching them, or an
    unknown shop, is skipped.
    """
    ratings = {sid: config.elo_base for sid in shop_ids if sid not in excluded_ids}

    for comp in comparisons:
        if comp.a in excluded_ids or comp.b in excluded_ids:
            continue
        rating_a = ratings.get(comp.a)
        rating_b = ratings.get(comp.b)
        if rating_a is None or rating_b is None:
            continue

        expected_a = _expected_score(rating_a, rating_b)
        expected_b = _expected_score(rating_b, rating_a)

        if comp.result == "a":
            score_a = 1.0
        elif comp.result == "b":
            score_a = 0.0
        else:
            score_a = 0.5
        score_b = 1.0 - score_a

        ratings[comp.a] = rating_a + config.elo_k * (score_a - expected_a)
        ratings[comp.b] = rating_b + config.elo_k * (score_b - expected_b)

    return ratings


def _sorted_ratings(ratings: dict[str, float]) -> list[tuple[str, float]]:
    return sorted(ratings.items(), key=lambda kv: (-kv[1], kv[0]))


def get_top_k(ratings: dict[str, float], k: int) -> list[str]:
    return [sid for sid, _ in _sorted_ratings(ratings)[:k]]


def get_boundary_delta(ratings: dict[str, float], k: int) -> float | None:
    """Gap between the k-th and (k+1)-th rating, or None if there is no (k+1)-th."""
    ordered = _sorted_ratings(ratings)
    if k <= 0 or len(ordered) <= k:
        return None
    return ordered[k - 1][1] - ordered[k][1]


def compared_pairs(comparisons: Iterable[Comparison]) -> set[Pair]:
    return {pair_key(c.a, c.b) for c in comparisons}


def get_missing_top_pairs(top_ids: Sequence[str], comparisons: Iterable[Comparison]) -> list[Pair]:
    existing = compared_pairs(comparisons)
    missing: list[Pair] = []
    for i, a in enumerate(top_ids):
        for b in top_ids[i + 1:]:
            if pair_key(a, b) not in existing:
                missing.append((a, b))
    return missing


def get_boundary_pairs(
    top_ids: Sequence[str],
    next_ids: Sequence[str],
    comparisons: Iterable[Comparison],
) -> list[Pair]:
    existing = compared_pairs(comparisons)
    return [
        (a, b)
        for a in top_ids
        for b in next_ids
        if pair_key(a, b) not in existing
    ]

