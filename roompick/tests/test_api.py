from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from roompick.app import app
from roompick.candidates.models import FetchMeta, Shop
from roompick.config import NG_SCORE
from roompick.rooms.models import RoomConditions, RoomState
from roompick.rooms.store import MemoryRoomStore, clear_rooms, get_room, save_room, set_store

set_store(MemoryRoomStore())
client = TestClient(app)

SCORES = {"S1": 90, "S2": NG_SCORE, "S3": 50, "S4": 50, "S5": 90}


def _seed(room_id="room1", shop_ids=("S1", "S2", "S3", "S4", "S5")):
    clear_rooms()
    shops = [Shop(id=sid, name=f"Shop {sid}") for sid in shop_ids]
    save_room(RoomState(id=room_id, conditions=RoomConditions(area="Shibuya"), shops=shops))


def _vote(room_id, user_id, scores):
    return client.post(f"/rooms/{room_id}/vote", json={
        "user_id": user_id,
        "votes": [{"shop_id": sid, "score": score} for sid, score in scores.items()],
    })


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ── Validation ───────────────────────────────────────────────────────────


def test_vote_requires_user_id():
    _seed()
    resp = client.post("/rooms/room1/vote", json={"votes": [{"shop_id": "S1", "score": 50}]})
    assert resp.status_code == 400


def test_vote_rejects_empty_list():
    _seed()
    resp = client.post("/rooms/room1/vote", json={"user_id": "u1", "votes": []})
    assert resp.status_code == 400
    assert get_room("room1").votes == {}


def test_vote_rejects_more_than_three_items():
    _seed()
    resp = _vote("room1", "u1", {"S1": 1, "S2": 2, "S3": 3, "S4": 4})
    assert resp.status_code == 400


def test_vote_unknown_room_is_404():
    clear_rooms()
    resp = _vote("missing", "u1", {"S1": 50})
    assert resp.status_code == 404


def test_next_shop_requires_user_id():
    _seed()
    assert client.get("/rooms/room1/next-shop").status_code == 400


def test_next_shop_rejects_bad_size():
    _seed()
    assert client.get("/rooms/room1/next-shop", params={"user_id": "u1", "size": 4}).status_code == 422


def test_next_shop_unknown_room_is_404():
    clear_rooms()
    assert client.get("/rooms/nope/next-shop", params={"user_id": "u1"}).status_code == 404


def test_result_unknown_room_is_404():
    clear_rooms()
    assert client.get("/rooms/nope/result").status_code == 404


# ── Voting ───────────────────────────────────────────────────────────────


def test_single_shop_vote_form():
    _seed()
    resp = client.post("/rooms/room1/vote", json={"user_id": "u1", "shop_id": "S1", "score": 70})
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    entry = get_room("room1").votes["u1"]["S1"]
    assert (entry.sum, entry.count) == (70, 1)


def test_pair_vote_records_comparison():
    _seed()
    _vote("room1", "u1", {"S1": 80, "S3": 20})
    room = get_room("room1")
    assert room.participants == ["u1"]
    assert [(c.a, c.b, c.result) for c in room.comparisons["u1"]] == [("S1", "S3", "a")]


def test_ng_vote_resets_positive_aggregate():
    _seed()
    _vote("room1", "u1", {"S1": 80})
    _vote("room1", "u1", {"S1": 60})
    assert get_room("room1").votes["u1"]["S1"].count == 2

    _vote("room1", "u1", {"S1": NG_SCORE})
    entry = get_room("room1").votes["u1"]["S1"]
    assert entry.sum == 0
    assert entry.count == 0
    assert entry.ng is True


# ── Next comparison ──────────────────────────────────────────────────────


def test_next_shop_returns_triplet_by_default():
    _seed()
    resp = client.get("/rooms/room1/next-shop", params={"user_id": "u1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["kind"] == "triplet"
    assert len(body["shops"]) == 3
    assert body["mode"] == "unseen"
    assert body["progress"] == {"evaluated": 0, "total": 5, "is_decided": False, "decided_shop_id": None}
    assert len(get_room("room1").pair_history["u1"]) == 3


def test_next_shop_waits_when_pool_is_too_small():
    _seed(shop_ids=("S1", "S2"))
    body = client.get("/rooms/room1/next-shop", params={"user_id": "u1", "size": 3}).json()
    assert body["shops"] is None
    assert body["kind"] is None


@patch("roompick.rooms.service.populate_pool")
def test_empty_pool_is_fetched_and_persisted(mock_populate):
    clear_rooms()
    save_room(RoomState(id="room1", conditions=RoomConditions(area="Shibuya", budget_max=3000)))
    shops = [Shop(id=f"S{i}", name=f"Shop {i}") for i in range(1, 4)]
    mock_populate.return_value = (shops, FetchMeta(fetched_count=3, candidate_pool_count=3))

    resp = client.get("/rooms/room1/next-shop", params={"user_id": "u1", "size": 2})
    assert resp.status_code == 200
    assert resp.json()["kind"] == "pair"
    assert mock_populate.call_args.args[0].budget_max == 3000

    room = get_room("room1")
    assert [s.id for s in room.shops] == ["S1", "S2", "S3"]
    assert room.fetch_meta.fetched_count == 3


@patch("roompick.rooms.service.next_comparison", side_effect=RuntimeError("client went away"))
@patch("roompick.rooms.service.populate_pool")
def test_fetched_pool_survives_abandoned_request(mock_populate, mock_next):
    clear_rooms()
    save_room(RoomState(id="room1", conditions=RoomConditions(area="Shibuya")))
    mock_populate.return_value = ([Shop(id="S1"), Shop(id="S2")], FetchMeta())

    with pytest.raises(RuntimeError):
        client.get("/rooms/room1/next-shop", params={"user_id": "u1"})
    assert [s.id for s in get_room("room1").shops] == ["S1", "S2"]


# ── End to end ───────────────────────────────────────────────────────────


def test_single_user_session_ranks_favourites_and_drops_rejected():
    _seed()
    for _ in range(12):
        body = client.get("/rooms/room1/next-shop", params={"user_id": "u1", "size": 2}).json()
        if body["shops"] is None:
            break
        _vote("room1", "u1", {s["id"]: SCORES[s["id"]] for s in body["shops"]})

        result = client.get("/rooms/room1/result").json()
        assert "S2" not in [c["shop"]["id"] for c in result["candidates"]]

    result = client.get("/rooms/room1/result").json()
    ids = [c["shop"]["id"] for c in result["candidates"]]
    assert set(ids[:2]) == {"S1", "S5"}
    assert set(ids[2:]) == {"S3", "S4"}
    assert result["is_decided"] is False
    assert result["a_analysis"] == {"exists": False, "max_a_score": None}


def test_room_auto_decides_and_freezes():
    _seed(shop_ids=("S1", "S2", "S3"))
    triplet = {"S1": 90, "S2": 20, "S3": 50}
    for round_no in range(1, 6):
        body = _vote("room1", "u1", triplet).json()
        assert body["is_decided"] is (round_no == 5)
    assert body["decided_shop_id"] == "S1"

    room = get_room("room1")
    assert room.is_decided
    assert len(room.rank_history) == 5

    # Decided rooms ignore further votes.
    body = _vote("room1", "u1", {"S1": NG_SCORE}).json()
    assert body == {"success": True, "is_decided": True, "decided_shop_id": "S1"}
    assert get_room("room1").votes["u1"]["S1"].ng is False

    body = client.get("/rooms/room1/next-shop", params={"user_id": "u1"}).json()
    assert body["shops"] is None
    assert body["decided_shop"]["id"] == "S1"
    assert body["progress"]["is_decided"] is True
    assert body["progress"]["evaluated"] == 3

    result = client.get("/rooms/room1/result").json()
    assert result["is_decided"] is True
    assert result["decided_shop"]["id"] == "S1"
