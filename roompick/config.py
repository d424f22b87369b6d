"""
Engine tuning constants.

All numeric knobs of the rating engine, sampler, orchestrator and decision
rule live in one immutable ``EngineConfig``.  Functions take it as a
``config`` argument defaulting to ``DEFAULT_ENGINE_CONFIG``.
"""
from __future__ import annotations

from dataclasses import dataclass

# Reserved score meaning "never show this shop to me again".
NG_SCORE = -999


@dataclass(frozen=True)
class EngineConfig:
    # Elo
    elo_base: float = 1000.0
    elo_k: float = 48.0
    top_target_count: int = 5
    top_focus_count: int = 10
    top_boundary_delta: float = 50.0
    top_missing_pair_limit: int = 0

    # Genre bias
    negative_score_threshold: float = 30.0
    positive_score_threshold: float = 70.0
    user_neg_weight: float = 0.35
    user_pos_weight: float = 0.15
    global_pos_weight: float = 0.1
    min_genre_weight: float = 0.25
    max_genre_weight: float = 1.6

    # Orchestrator
    comparison_size: int = 3
    pair_history_limit: int = 20
    history_retry_attempts: int = 10

    # Ranking / decision
    consecutive_rounds: int = 5
    decision_margin: float = 10.0
    min_common_ratio: float = 0.3

    # Candidate pool
    candidate_pool_size: int = 50


DEFAULT_ENGINE_CONFIG = EngineConfig()
