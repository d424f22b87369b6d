from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..candidates.models import FetchMeta, Shop
from ..voting.models import Comparison, VoteEntry
from ..voting.stats import normalize_vote


class RoomConditions(BaseModel):
    area: str = ""
    budget: str | None = None
    budget_min: int | None = None
    budget_max: int | None = None


class PairRecord(BaseModel):
    a: str
    b: str


class RankSnapshot(BaseModel):
    timestamp: float
    top1_shop_id: str
    top2_shop_id: str
    score_diff: float


class RoomState(BaseModel):
    id: str = Field(..., min_length=1)
    conditions: RoomConditions = Field(default_factory=RoomConditions)
    shops: list[Shop] = Field(default_factory=list)
    votes: dict[str, dict[str, VoteEntry]] = Field(default_factory=dict)
    participants: list[str] = Field(default_factory=list)
    fetch_meta: FetchMeta | None = None
    comparisons: dict[str, list[Comparison]] = Field(default_factory=dict)
    pair_history: dict[str, list[PairRecord]] = Field(default_factory=dict)
    rank_history: list[RankSnapshot] = Field(default_factory=list)
    is_decided: bool = False
    decided_shop_id: str | None = None
    version: int = 0

    @field_validator("votes", mode="before")
    @classmethod
    def _normalize_votes(cls, value: Any) -> Any:
        # Older documents stored a bare score per shop.
        if not isinstance(value, dict):
            return value
        return {
            user_id: {
                shop_id: normalize_vote(entry)
                for shop_id, entry in (user_votes or {}).items()
                if entry is not None
            }
            for user_id, user_votes in value.items()
        }

    def shop_by_id(self, shop_id: str | None) -> Shop | None:
        if shop_id is None:
            return None
        for shop in self.shops:
            if shop.id == shop_id:
                return shop
        return None

    def user_votes(self, user_id: str) -> dict[str, VoteEntry]:
        return self.votes.get(user_id, {})
