from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..rooms.models import RankSnapshot
from .aggregate import RankedShop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    decided: bool
    shop_id: str | None = None


def record_snapshot(
    history: Sequence[RankSnapshot],
    ranking: Sequence[RankedShop],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    now: float | None = None,
) -> list[RankSnapshot]:
    """Append the current top-two to *history*, keeping the last R snapshots.

    Rankings with fewer than two shops leave the history unchanged.
    """
    updated = list(history)
    if len(ranking) >= 2:
        top1, top2 = ranking[0], ranking[1]
        updated.append(RankSnapshot(
            timestamp=time.time() if now is None else now,
            top1_shop_id=top1.shop.id,
            top2_shop_id=top2.shop.id,
            score_diff=top1.avg_score - top2.avg_score,
        ))
    return updated[-config.consecutive_rounds:]


def check_auto_decision(
    history: Sequence[RankSnapshot],
    ranking: Sequence[RankedShop],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Decision:
    """Decide once the last R snapshots agree on the leader by a clear margin."""
    if not ranking or len(history) < config.consecutive_rounds:
        return Decision(decided=False)

    window = history[-config.consecutive_rounds:]
    leader = window[0].top1_shop_id
    if ranking[0].shop.id != leader:
        return Decision(decided=False)
    for snapshot in window:
        if snapshot.top1_shop_id != leader or snapshot.score_diff <= config.decision_margin:
            return Decision(decided=False)

    logger.info("Auto-decided shop %s after %d stable rounds", leader, len(window))
    return Decision(decided=True, shop_id=leader)
