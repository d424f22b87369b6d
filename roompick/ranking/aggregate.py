from __future__ import annotations

from collections.abc import Mapping, Sequence

import pandas as pd
from pydantic import BaseModel

from ..candidates.models import Shop
from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..voting.models import Comparison, VoteEntry
from ..voting.stats import average_score
from .elo import compute_ratings
from .penalty import OutlierNegativePenalty, PenaltyAnalysis, RankingPenalty

RoomVotes = Mapping[str, Mapping[str, VoteEntry]]

_VOTE_COLUMNS = ["user_id", "shop_id", "avg", "ng"]


class RankedShop(BaseModel):
    shop: Shop
    avg_score: float
    rated_count: int
    penalty_applied: bool = False
    elo: float


def get_participant_count(votes: RoomVotes) -> int:
    return sum(1 for user_votes in votes.values() if user_votes)


def get_min_common(participant_count: int, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> int:
    """Minimum number of raters a shop needs before it can be ranked."""
    return max(1, round(participant_count * config.min_common_ratio))


def votes_frame(votes: RoomVotes) -> pd.DataFrame:
    rows = [
        {
            "user_id": user_id,
            "shop_id": shop_id,
            "avg": average_score(entry),
            "ng": entry.ng,
        }
        for user_id, user_votes in votes.items()
        for shop_id, entry in user_votes.items()
    ]
    return pd.DataFrame(rows, columns=_VOTE_COLUMNS)


def _mean_elo(
    shop_ids: list[str],
    votes: RoomVotes,
    comparisons: Mapping[str, Sequence[Comparison]],
    config: EngineConfig,
) -> dict[str, float]:
    per_user: list[dict[str, float]] = []
    for user_id, user_comparisons in comparisons.items():
        if not user_comparisons:
            continue
        rejected = {sid for sid, e in votes.get(user_id, {}).items() if e.ng}
        per_user.append(compute_ratings(shop_ids, user_comparisons, rejected, config))
    if not per_user:
        return {sid: config.elo_base for sid in shop_ids}
    frame = pd.DataFrame(per_user)
    means = frame.mean(axis=0, skipna=True)
    return {sid: float(means.get(sid, config.elo_base)) for sid in shop_ids}


def rank(
    shops: Sequence[Shop],
    votes: RoomVotes,
    comparisons: Mapping[str, Sequence[Comparison]] | None = None,
    min_common: int = 1,
    penalty: RankingPenalty | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    analysis: PenaltyAnalysis | None = None,
) -> list[RankedShop]:
    """Rank the pool by mean per-user score, best first.

    A rejection only drops that user from the shop's average; shops with
    fewer than *min_common* raters are not eligible yet.  Ties on the
    adjusted score fall back to mean Elo across users, then shop id.
    """
    penalty = penalty or OutlierNegativePenalty(config=config)
    if analysis is None:
        analysis = penalty.analyze(votes)

    df = votes_frame(votes)
    if df.empty:
        return []
    rated = df[df["avg"].notna() & ~df["ng"]]
    stats = rated.groupby("shop_id")["avg"].agg(["mean", "count"])

    eligible = [
        shop for shop in shops
        if shop.id in stats.index
        and stats.at[shop.id, "count"] >= min_common
    ]
    if not eligible:
        return []

    elo = _mean_elo([s.id for s in shops], votes, comparisons or {}, config)

    rows = []
    for shop in eligible:
        score, applied = penalty.adjust(shop.id, float(stats.at[shop.id, "mean"]), analysis)
        rows.append({
            "shop_id": shop.id,
            "score": score,
            "raters": int(stats.at[shop.id, "count"]),
            "penalty": applied,
            "elo": elo[shop.id],
        })

    table = pd.DataFrame(rows).sort_values(
        ["score", "elo", "shop_id"], ascending=[False, False, True],
    )
    shop_by_id = {shop.id: shop for shop in eligible}
    return [
        RankedShop(
            shop=shop_by_id[row.shop_id],
            avg_score=float(row.score),
            rated_count=int(row.raters),
            penalty_applied=bool(row.penalty),
            elo=float(row.elo),
        )
        for row in table.itertuples(index=False)
    ]
