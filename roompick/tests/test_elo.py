from __future__ import annotations

import pytest

from roompick.config import EngineConfig
from roompick.ranking.elo import (
    compute_ratings,
    get_boundary_delta,
    get_boundary_pairs,
    get_missing_top_pairs,
    get_top_k,
)
from roompick.voting.models import Comparison


def _comp(a, b, result):
    return Comparison(a=a, b=b, result=result)


def test_every_shop_starts_at_base():
    ratings = compute_ratings(["a", "b", "c"], [])
    assert ratings == {"a": 1000, "b": 1000, "c": 1000}


def test_excluded_shops_get_no_rating():
    ratings = compute_ratings(["a", "b", "c"], [_comp("a", "c", "a")], {"c"})
    assert set(ratings) == {"a", "b"}
    assert ratings["a"] == 1000


def test_win_between_equals_moves_half_k():
    ratings = compute_ratings(["a", "b"], [_comp("a", "b", "a")])
    assert ratings["a"] == pytest.approx(1024)
    assert ratings["b"] == pytest.approx(976)


def test_tie_between_equals_changes_nothing():
    ratings = compute_ratings(["a", "b"], [_comp("a", "b", "tie")])
    assert ratings == {"a": 1000, "b": 1000}


def test_unknown_shops_are_skipped():
    ratings = compute_ratings(["a", "b"], [_comp("a", "zzz", "a")])
    assert ratings == {"a": 1000, "b": 1000}


def test_custom_k_is_used():
    ratings = compute_ratings(["a", "b"], [_comp("a", "b", "b")], config=EngineConfig(elo_k=32))
    assert ratings["b"] == pytest.approx(1016)


def test_replay_is_deterministic_and_order_dependent():
    log = [_comp("a", "b", "a"), _comp("a", "b", "b"), _comp("b", "c", "tie")]
    first = compute_ratings(["a", "b", "c"], log)
    second = compute_ratings(["a", "b", "c"], log)
    assert first == second

    swapped = compute_ratings(["a", "b", "c"], [log[1], log[0], log[2]])
    assert swapped["a"] != pytest.approx(first["a"])
    assert sum(first.values()) == pytest.approx(3000)


def test_top_k_breaks_ties_by_id():
    ratings = {"c": 1000.0, "a": 1000.0, "b": 1010.0}
    assert get_top_k(ratings, 2) == ["b", "a"]


def test_top_k_size_is_bounded_by_rated_count():
    ratings = compute_ratings(["a", "b", "c"], [], {"b"})
    top = get_top_k(ratings, 5)
    assert len(top) == 2
    assert "b" not in top


def test_boundary_delta():
    ratings = {"a": 1100.0, "b": 1050.0, "c": 1020.0}
    assert get_boundary_delta(ratings, 2) == pytest.approx(30)
    assert get_boundary_delta(ratings, 3) is None


def test_missing_top_pairs():
    comps = [_comp("b", "a", "a")]
    assert get_missing_top_pairs(["a", "b", "c"], comps) == [("a", "c"), ("b", "c")]


def test_boundary_pairs_skip_compared():
    comps = [_comp("x", "a", "tie")]
    pairs = get_boundary_pairs(["a", "b"], ["x", "y"], comps)
    assert pairs == [("a", "y"), ("b", "x"), ("b", "y")]
