"""
Genre-bias weighted sampling.

Each candidate shop gets a weight from its genre: genres the user tends to
score low are shown less often, genres the user (and, more mildly, the whole
group) scores high are shown more often.  Weights are clamped so no genre is
ever starved or dominant.
"""
from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from ..candidates.models import Shop
from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..voting.models import VoteEntry
from ..voting.stats import average_score

T = TypeVar("T")

RoomVotes = Mapping[str, Mapping[str, VoteEntry]]


@dataclass
class GenreCounts:
    total: int = 0
    neg: int = 0
    pos: int = 0


@dataclass
class GenreStats:
    user: dict[str, dict[str, GenreCounts]] = field(default_factory=dict)
    global_: dict[str, GenreCounts] = field(default_factory=dict)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def build_genre_stats(
    shops: Sequence[Shop],
    votes: RoomVotes,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> GenreStats:
    """Count rated / negative / positive shops per (user, genre) and per genre."""
    genre_by_id = {shop.id: shop.genre_name for shop in shops}
    stats = GenreStats()

    for user_id, user_votes in votes.items():
        user_stats = stats.user.setdefault(user_id, {})
        for shop_id, entry in user_votes.items():
            genre = genre_by_id.get(shop_id)
            if not genre:
                continue
            avg = average_score(entry)
            if avg is None:
                continue

            u = user_stats.setdefault(genre, GenreCounts())
            g = stats.global_.setdefault(genre, GenreCounts())
            u.total += 1
            g.total += 1
            if avg <= config.negative_score_threshold:
                u.neg += 1
                g.neg += 1
            if avg >= config.positive_score_threshold:
                u.pos += 1
                g.pos += 1

    return stats


def genre_weight(
    user_id: str,
    genre: str,
    stats: GenreStats,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> float:
    u = stats.user.get(user_id, {}).get(genre)
    g = stats.global_.get(genre)

    neg_rate = u.neg / u.total if u and u.total > 0 else 0.0
    pos_rate = u.pos / u.total if u and u.total > 0 else 0.0
    global_pos_rate = g.pos / g.total if g and g.total > 0 else 0.0

    user_weight = 1 - config.user_neg_weight * neg_rate + config.user_pos_weight * pos_rate
    global_weight = 1 + config.global_pos_weight * global_pos_rate

    return _clamp(user_weight * global_weight, config.min_genre_weight, config.max_genre_weight)


def shop_weights(
    user_id: str,
    candidates: Sequence[Shop],
    stats: GenreStats,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> list[float]:
    weights: list[float] = []
    for shop in candidates:
        genre = shop.genre_name
        weights.append(genre_weight(user_id, genre, stats, config) if genre else 1.0)
    return weights


def pick_weighted(
    items: Sequence[T],
    weights: Sequence[float],
    rng: random.Random | None = None,
) -> T | None:
    """Draw one item with probability proportional to its weight.

    Falls back to a uniform draw when the weights sum to zero or less.
    """
    if not items:
        return None
    rng = rng or random.Random()
    total = sum(weights)
    if total <= 0:
        return items[rng.randrange(len(items))]

    r = rng.random() * total
    for item, weight in zip(items, weights):
        r -= weight
        if r <= 0:
            return item
    return items[-1]


def select_many(
    user_id: str,
    candidates: Sequence[Shop],
    votes: RoomVotes,
    count: int,
    pool: Sequence[Shop] | None = None,
    rng: random.Random | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> list[Shop] | None:
    """Draw *count* distinct shops without replacement, keeping each shop's weight."""
    if count <= 0 or len(candidates) < count:
        return None
    rng = rng or random.Random()
    stats = build_genre_stats(pool if pool is not None else candidates, votes, config)

    remaining = list(candidates)
    remaining_weights = shop_weights(user_id, remaining, stats, config)
    chosen: list[Shop] = []
    while len(chosen) < count:
        pick = pick_weighted(remaining, remaining_weights, rng)
        if pick is None:
            return None
        chosen.append(pick)
        kept = [(s, w) for s, w in zip(remaining, remaining_weights) if s.id != pick.id]
        remaining = [s for s, _ in kept]
        remaining_weights = [w for _, w in kept]
    return chosen


def select_pair(
    user_id: str,
    candidates: Sequence[Shop],
    votes: RoomVotes,
    pool: Sequence[Shop] | None = None,
    rng: random.Random | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> tuple[Shop, Shop] | None:
    picked = select_many(user_id, candidates, votes, 2, pool, rng, config)
    if picked is None:
        return None
    return picked[0], picked[1]


def select_single(
    user_id: str,
    candidates: Sequence[Shop],
    votes: RoomVotes,
    pool: Sequence[Shop] | None = None,
    rng: random.Random | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Shop | None:
    picked = select_many(user_id, candidates, votes, 1, pool, rng, config)
    return picked[0] if picked else None
