"""
Negative-voter ("A") detection.

A participant whose lowest score sits far below everybody else's lowest
score is treated as a strong-veto voter: shops they scored low are demoted
in the group ranking.  The heuristic is behind ``RankingPenalty`` so the
ranking pipeline does not depend on its exact shape.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..voting.models import VoteEntry
from ..voting.stats import average_score

RoomVotes = Mapping[str, Mapping[str, VoteEntry]]


@dataclass
class PenaltyAnalysis:
    exists: bool = False
    user_id: str | None = None
    max_score: float | None = None
    min_score: float | None = None
    user_scores: dict[str, float] = field(default_factory=dict)


class RankingPenalty(Protocol):
    def analyze(self, votes: RoomVotes) -> PenaltyAnalysis: ...

    def adjust(
        self,
        shop_id: str,
        score: float,
        analysis: PenaltyAnalysis,
    ) -> tuple[float, bool]: ...


class NoPenalty:
    def analyze(self, votes: RoomVotes) -> PenaltyAnalysis:
        return PenaltyAnalysis()

    def adjust(self, shop_id: str, score: float, analysis: PenaltyAnalysis) -> tuple[float, bool]:
        return score, False


def _user_averages(votes: RoomVotes) -> dict[str, dict[str, float]]:
    result: dict[str, dict[str, float]] = {}
    for user_id, user_votes in votes.items():
        scores = {sid: avg for sid, entry in user_votes.items() if (avg := average_score(entry)) is not None}
        if scores:
            result[user_id] = scores
    return result


class OutlierNegativePenalty:
    """Demote shops scored low by the participant with an outlier-low minimum.

    The lowest per-user minimum is compared with the mean of the other
    participants' minimums; it is an outlier when it falls more than
    ``z_threshold`` spreads below that mean.  The spread is the others'
    standard deviation, floored at ``min_spread`` score points so a tight
    group does not flag ordinary differences.
    """

    def __init__(
        self,
        z_threshold: float = 1.5,
        min_spread: float = 10.0,
        factor: float = 0.85,
        min_participants: int = 3,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    ) -> None:
        self.z_threshold = z_threshold
        self.min_spread = min_spread
        self.factor = factor
        self.min_participants = min_participants
        self.config = config

    def analyze(self, votes: RoomVotes) -> PenaltyAnalysis:
        averages = _user_averages(votes)
        if len(averages) < self.min_participants:
            return PenaltyAnalysis()

        minimums = {user_id: min(scores.values()) for user_id, scores in averages.items()}
        suspect = min(minimums, key=lambda u: (minimums[u], u))
        others = np.array([m for u, m in minimums.items() if u != suspect], dtype=float)
        spread = max(float(others.std()), self.min_spread)
        if minimums[suspect] >= float(others.mean()) - self.z_threshold * spread:
            return PenaltyAnalysis()

        scores = averages[suspect]
        return PenaltyAnalysis(
            exists=True,
            user_id=suspect,
            max_score=max(scores.values()),
            min_score=minimums[suspect],
            user_scores=dict(scores),
        )

    def adjust(self, shop_id: str, score: float, analysis: PenaltyAnalysis) -> tuple[float, bool]:
        if not analysis.exists:
            return score, False
        user_score = analysis.user_scores.get(shop_id)
        if user_score is None or user_score > self.config.negative_score_threshold:
            return score, False
        return score * self.factor, True
