from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ComparisonResult = Literal["a", "b", "tie"]


class VoteEntry(BaseModel):
    sum: float = 0.0
    count: int = 0
    last_score: float = 0.0
    ng: bool = False


class Comparison(BaseModel):
    a: str
    b: str
    result: ComparisonResult


class VoteItem(BaseModel):
    shop_id: str = Field(..., min_length=1)
    score: float
