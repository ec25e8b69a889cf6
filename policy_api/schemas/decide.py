"""Pydantic schemas for the decide endpoint."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class DecideRequest(BaseModel):
    """Body of ``POST /api/decide``.

    ``mode``, ``stem`` and ``options`` are normalized by the route; wrong
    types behave like missing values.
    """

    model_config = ConfigDict(extra="ignore")

    question: str = Field("", description="Yes/no question, or 'stem: a | b | c' for multi mode.")
    mode: Any = Field(None, description="'multi' to score options instead of answering yes/no.")
    stem: Any = Field(None, description="What the options are compared on (multi mode).")
    options: Any = Field(None, description="2 to 8 options to score (multi mode).")


class ScoredOption(BaseModel):
    index: int
    option: str
    score: float


class DecideResponse(BaseModel):
    c: Literal["yes", "no", "unclear", "filtered", "ok"] = Field(..., description="Decision class.")
    v: str = Field(..., description="Display value or reason.")
    request_id: str | None = None
    stem: str | None = Field(None, description="Multi mode: decision stem.")
    winner_index: int | None = Field(None, description="Multi mode: index of the best option.")
    tie: bool | None = Field(None, description="Multi mode: more than one option shares the top score.")
    tie_indices: list[int] | None = None
    scores: list[float] | None = None
    options: list[ScoredOption] | None = None
