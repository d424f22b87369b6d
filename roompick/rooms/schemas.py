from __future__ import annotations

from pydantic import BaseModel, Field

from ..candidates.models import Shop
from ..ranking.aggregate import RankedShop
from ..voting.models import VoteItem


class VoteRequest(BaseModel):
    user_id: str | None = None
    votes: list[VoteItem] | None = None
    # Single-shop form
    shop_id: str | None = None
    score: float | None = None

    def items(self) -> list[VoteItem]:
        if self.votes is not None:
            return list(self.votes)
        if self.shop_id and self.score is not None:
            return [VoteItem(shop_id=self.shop_id, score=self.score)]
        return []


class VoteResponse(BaseModel):
    success: bool
    is_decided: bool
    decided_shop_id: str | None = None


class Progress(BaseModel):
    evaluated: int
    total: int
    is_decided: bool
    decided_shop_id: str | None = None


class NextShopResponse(BaseModel):
    shops: list[Shop] | None = None
    kind: str | None = Field(default=None, description='"pair", "triplet", or null while waiting')
    mode: str | None = None
    decided_shop: Shop | None = None
    progress: Progress


class PenaltySummary(BaseModel):
    exists: bool
    max_a_score: float | None = None


class ResultResponse(BaseModel):
    candidates: list[RankedShop]
    participant_count: int
    min_common: int
    is_decided: bool
    decided_shop_id: str | None = None
    decided_shop: Shop | None = None
    a_analysis: PenaltySummary
