from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CodeName(BaseModel):
    code: str | None = None
    name: str | None = None


class Shop(BaseModel):
    """A candidate venue. Extra display fields from the source are preserved."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    name: str = ""
    genre: CodeName | None = None
    budget: CodeName | None = None

    @property
    def genre_name(self) -> str | None:
        return self.genre.name if self.genre and self.genre.name else None


class BudgetRange(BaseModel):
    min: int
    max: int


class FetchMeta(BaseModel):
    fetched_count: int = 0
    filtered_count: int = 0
    candidate_pool_count: int = 0
    budget_codes: list[str] = Field(default_factory=list)
    budget_filter_used: bool = False
    fallback_used: bool = False
    range: BudgetRange | None = None
