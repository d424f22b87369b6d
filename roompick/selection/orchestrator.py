"""
Round orchestration.

Decides which shops a participant compares next:

1. **Unseen-first** -- while shops the user never rated remain, show them,
   topping up with already-seen shops when fewer unseen shops than the set
   size are left: shops in an uncompared pair across the top-K cut line
   first, then the user's focus band.
2. **Targeted** -- once everything was seen, close gaps in the user's Elo
   ranking: first any never-compared pair inside the top-K, then pairs across
   the top-K cut line while the boundary gap is still small.
3. **Refine** -- otherwise draw a genre-weighted pair from the focus band.

Recently shown pairs are avoided where possible, never at the cost of
returning nothing.
"""
from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from ..candidates.models import Shop
from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..ranking.elo import (
    Pair,
    compute_ratings,
    get_boundary_delta,
    get_boundary_pairs,
    get_missing_top_pairs,
    get_top_k,
    pair_key,
)
from ..rooms.models import PairRecord, RoomState
from .genre_bias import select_many, select_single

logger = logging.getLogger(__name__)


class SelectionMode(str, Enum):
    unseen = "unseen"
    targeted = "targeted"
    refine = "refine"


@dataclass
class ComparisonSet:
    shops: list[Shop]
    mode: SelectionMode

    @property
    def kind(self) -> str:
        return "pair" if len(self.shops) == 2 else "triplet"


def sub_pairs(shop_ids: Sequence[str]) -> list[Pair]:
    return [
        pair_key(a, b)
        for i, a in enumerate(shop_ids)
        for b in shop_ids[i + 1:]
    ]


def push_pair_history(
    history: list[PairRecord],
    shop_ids: Sequence[str],
    limit: int = DEFAULT_ENGINE_CONFIG.pair_history_limit,
) -> list[PairRecord]:
    """Append every sub-pair of a shown set, keeping only the newest *limit*."""
    updated = history + [PairRecord(a=a, b=b) for a, b in sub_pairs(shop_ids)]
    return updated[-limit:] if limit > 0 else []


def _hits_history(shop_ids: Sequence[str], history_keys: set[Pair]) -> bool:
    return any(p in history_keys for p in sub_pairs(shop_ids))


class _Context:
    """Per-request view of one user's state in a room."""

    def __init__(
        self,
        room: RoomState,
        user_id: str,
        rng: random.Random,
        config: EngineConfig,
    ) -> None:
        self.room = room
        self.user_id = user_id
        self.rng = rng
        self.config = config

        self.user_votes = room.user_votes(user_id)
        self.rejected = {sid for sid, entry in self.user_votes.items() if entry.ng}
        self.eligible = [s for s in room.shops if s.id not in self.rejected]
        self.by_id = {s.id: s for s in self.eligible}
        self.unseen = [s for s in self.eligible if s.id not in self.user_votes]
        self.seen = [s for s in self.eligible if s.id in self.user_votes]
        self.comparisons = room.comparisons.get(user_id, [])
        self.history_keys = {pair_key(p.a, p.b) for p in room.pair_history.get(user_id, [])}

        self.ratings = compute_ratings(
            [s.id for s in self.eligible], self.comparisons, self.rejected, config,
        )
        self.focus_ids = get_top_k(self.ratings, config.top_focus_count)

    def draw(
        self,
        candidates: Sequence[Shop],
        count: int,
        fixed: Sequence[Shop] = (),
    ) -> list[Shop] | None:
        """Weighted draw of *count* shops, re-drawing while it repeats a recent pair."""
        fixed_ids = [s.id for s in fixed]
        drawn: list[Shop] | None = None
        for _ in range(max(1, self.config.history_retry_attempts)):
            drawn = select_many(
                self.user_id,
                candidates,
                self.room.votes,
                count,
                pool=self.room.shops,
                rng=self.rng,
                config=self.config,
            )
            if drawn is None:
                return None
            if not _hits_history(fixed_ids + [s.id for s in drawn], self.history_keys):
                return drawn
        return drawn

    def focus_shops(self, exclude: set[str] = frozenset()) -> list[Shop]:
        return [self.by_id[sid] for sid in self.focus_ids if sid not in exclude]


def _boundary_shops(ctx: _Context) -> list[Shop]:
    """Seen shops in a not-yet-compared pair across the top-K cut line."""
    config = ctx.config
    delta = get_boundary_delta(ctx.ratings, config.top_target_count)
    if delta is None or delta >= config.top_boundary_delta:
        return []
    top_ids = get_top_k(ctx.ratings, config.top_target_count)
    next_ids = ctx.focus_ids[len(top_ids):]
    members = {sid for pair in get_boundary_pairs(top_ids, next_ids, ctx.comparisons) for sid in pair}
    return [s for s in ctx.seen if s.id in members]


def _select_unseen(ctx: _Context, size: int) -> list[Shop] | None:
    if len(ctx.unseen) >= size:
        return ctx.draw(ctx.unseen, size)

    needed = size - len(ctx.unseen)
    boundary = _boundary_shops(ctx)
    focus = [s for s in ctx.focus_shops() if s.id in ctx.user_votes]
    if len(boundary) >= needed:
        fill_from = boundary
    elif len(focus) >= needed:
        fill_from = focus
    else:
        fill_from = ctx.seen
    fill = ctx.draw(fill_from, needed, fixed=ctx.unseen)
    if fill is None:
        return None
    return list(ctx.unseen) + fill


def _prefer_fresh(pairs: list[Pair], history_keys: set[Pair]) -> list[Pair]:
    fresh = [p for p in pairs if pair_key(*p) not in history_keys]
    return fresh or pairs


def _select_base_pair(ctx: _Context) -> tuple[list[Shop], SelectionMode] | None:
    config = ctx.config
    top_ids = get_top_k(ctx.ratings, config.top_target_count)
    next_ids = ctx.focus_ids[len(top_ids):]

    missing = get_missing_top_pairs(top_ids, ctx.comparisons)
    if len(missing) > config.top_missing_pair_limit:
        a, b = ctx.rng.choice(missing)
        return [ctx.by_id[a], ctx.by_id[b]], SelectionMode.targeted

    delta = get_boundary_delta(ctx.ratings, config.top_target_count)
    if delta is not None and delta < config.top_boundary_delta:
        crossing = get_boundary_pairs(top_ids, next_ids, ctx.comparisons)
        if not crossing:
            crossing = [(a, b) for a in top_ids for b in next_ids]
        if crossing:
            a, b = ctx.rng.choice(_prefer_fresh(crossing, ctx.history_keys))
            return [ctx.by_id[a], ctx.by_id[b]], SelectionMode.targeted

    focus = ctx.focus_shops()
    pool = focus if len(focus) >= 2 else ctx.eligible
    pair = ctx.draw(pool, 2)
    if pair is None:
        return None
    return pair, SelectionMode.refine


def _select_third(ctx: _Context, base: list[Shop]) -> Shop | None:
    base_ids = {s.id for s in base}
    pool = ctx.focus_shops(exclude=base_ids)
    if not pool:
        pool = [s for s in ctx.eligible if s.id not in base_ids]
    preferred = [
        s for s in pool
        if all(pair_key(b.id, s.id) not in ctx.history_keys for b in base)
    ]
    return select_single(
        ctx.user_id,
        preferred or pool,
        ctx.room.votes,
        pool=ctx.room.shops,
        rng=ctx.rng,
        config=ctx.config,
    )


def next_comparison(
    room: RoomState,
    user_id: str,
    size: int | None = None,
    rng: random.Random | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> ComparisonSet | None:
    """Pick the next pair or triplet for *user_id*, or None if none can be formed.

    On success the user's pair history in *room* is updated in place.
    """
    size = size or config.comparison_size
    if size not in (2, 3):
        raise ValueError(f"comparison size must be 2 or 3, got {size}")

    ctx = _Context(room, user_id, rng or random.Random(), config)
    if len(ctx.eligible) < size:
        return None

    if ctx.unseen:
        shops = _select_unseen(ctx, size)
        mode = SelectionMode.unseen
    else:
        selected = _select_base_pair(ctx)
        if selected is None:
            return None
        shops, mode = selected
        if size == 3:
            third = _select_third(ctx, shops)
            if third is None:
                return None
            shops = shops + [third]

    if not shops:
        return None

    logger.debug("room=%s user=%s mode=%s shops=%s", room.id, user_id, mode.value, [s.id for s in shops])
    room.pair_history[user_id] = push_pair_history(
        room.pair_history.get(user_id, []),
        [s.id for s in shops],
        config.pair_history_limit,
    )
    return ComparisonSet(shops=shops, mode=mode)
