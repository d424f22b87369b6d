"""
Room request handling.

Every operation reads the whole room document, applies the engine's pure
functions and writes the whole document back.  Concurrent writers to the
same room can overwrite each other; that is accepted.
"""
from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from ..candidates.pool import populate_pool
from ..candidates.source import HotPepperClient
from ..config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..errors import InvalidInputError, RoomNotFoundError
from ..ranking.aggregate import get_min_common, get_participant_count, rank
from ..ranking.decision import check_auto_decision, record_snapshot
from ..ranking.penalty import OutlierNegativePenalty, RankingPenalty
from ..selection.orchestrator import next_comparison
from ..voting.models import VoteItem
from ..voting.stats import apply_vote, build_comparisons
from .models import RoomState
from .schemas import NextShopResponse, PenaltySummary, Progress, ResultResponse, VoteResponse
from .store import get_room, save_room

logger = logging.getLogger(__name__)

MAX_VOTE_ITEMS = 3


def _require_user(user_id: str | None) -> str:
    if not user_id or not user_id.strip():
        raise InvalidInputError("user_id is required")
    return user_id


def _load_room(room_id: str) -> RoomState:
    room = get_room(room_id)
    if room is None:
        raise RoomNotFoundError(room_id)
    return room


def _progress(room: RoomState, user_id: str) -> Progress:
    return Progress(
        evaluated=len(room.user_votes(user_id)),
        total=len(room.shops),
        is_decided=room.is_decided,
        decided_shop_id=room.decided_shop_id,
    )


def submit_votes(
    room_id: str,
    user_id: str | None,
    items: Sequence[VoteItem],
    penalty: RankingPenalty | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> VoteResponse:
    """Record one submission of 1-3 scores and re-evaluate the room decision."""
    user_id = _require_user(user_id)
    if not items:
        raise InvalidInputError("votes are required")
    if len(items) > MAX_VOTE_ITEMS:
        raise InvalidInputError(f"at most {MAX_VOTE_ITEMS} votes per submission")

    room = _load_room(room_id)
    if room.is_decided:
        return VoteResponse(success=True, is_decided=True, decided_shop_id=room.decided_shop_id)

    user_votes = room.votes.setdefault(user_id, {})
    for item in items:
        user_votes[item.shop_id] = apply_vote(user_votes.get(item.shop_id), item.score)
    if user_id not in room.participants:
        room.participants.append(user_id)

    comparisons = build_comparisons(items)
    if comparisons:
        room.comparisons.setdefault(user_id, []).extend(comparisons)

    min_common = get_min_common(get_participant_count(room.votes), config)
    ranking = rank(room.shops, room.votes, room.comparisons, min_common, penalty, config)
    room.rank_history = record_snapshot(room.rank_history, ranking, config)

    decision = check_auto_decision(room.rank_history, ranking, config)
    if decision.decided:
        room.is_decided = True
        room.decided_shop_id = decision.shop_id
        logger.info("Room %s decided on shop %s", room.id, decision.shop_id)

    save_room(room)
    return VoteResponse(success=True, is_decided=room.is_decided, decided_shop_id=room.decided_shop_id)


def next_comparison_for(
    room_id: str,
    user_id: str | None,
    size: int | None = None,
    rng: random.Random | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> NextShopResponse:
    """Return the next comparison set for a user, or the final decision."""
    user_id = _require_user(user_id)
    if size is not None and size not in (2, 3):
        raise InvalidInputError("size must be 2 or 3")

    room = _load_room(room_id)
    if room.is_decided:
        return NextShopResponse(
            decided_shop=room.shop_by_id(room.decided_shop_id),
            progress=_progress(room, user_id),
        )

    if not room.shops:
        with HotPepperClient() as client:
            shops, meta = populate_pool(room.conditions, client, config)
        room.shops = shops
        room.fetch_meta = meta
        # Persist the pool before selecting so it survives an abandoned request.
        room = save_room(room)

    selected = next_comparison(room, user_id, size, rng, config)
    if selected is None:
        return NextShopResponse(progress=_progress(room, user_id))

    save_room(room)
    return NextShopResponse(
        shops=selected.shops,
        kind=selected.kind,
        mode=selected.mode.value,
        progress=_progress(room, user_id),
    )


def get_result(
    room_id: str,
    penalty: RankingPenalty | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> ResultResponse:
    room = _load_room(room_id)

    participant_count = get_participant_count(room.votes)
    min_common = get_min_common(participant_count, config)
    penalty = penalty or OutlierNegativePenalty(config=config)
    analysis = penalty.analyze(room.votes)
    ranking = rank(
        room.shops, room.votes, room.comparisons, min_common, penalty, config, analysis=analysis,
    )

    return ResultResponse(
        candidates=ranking,
        participant_count=participant_count,
        min_common=min_common,
        is_decided=room.is_decided,
        decided_shop_id=room.decided_shop_id,
        decided_shop=room.shop_by_id(room.decided_shop_id),
        a_analysis=PenaltySummary(exists=analysis.exists, max_a_score=analysis.max_score),
    )
