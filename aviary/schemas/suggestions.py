"""Pydantic schemas for photography suggestions."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class Suggestion(BaseModel):
    """One species the user should try to photograph next."""

    id: int = Field(..., description="Species id.")
    common_name: str
    scientific_name: str | None = None
    rarity: Literal["common", "uncommon", "rare"]
    score: int = Field(
        ...,
        ge=0,
        le=100,
        description="Priority score from 0 to 100; higher means photograph sooner.",
    )
    reason: str = Field(..., description="Short human-readable explanation of the ranking.")
    yearly_count: int = Field(..., ge=0, description="Detections recorded this year.")
    photo_count: int = Field(..., ge=0, description="Photos already in the species gallery.")
    last_heard: datetime | None = None


class SuggestionsResponse(BaseModel):
    suggestions: list[Suggestion]
    top_suggestion: Suggestion | None = None
    generated_at: datetime
