"""Pydantic schemas for gallery capacity and detection linking."""

from pydantic import BaseModel, Field


class CapacityResponse(BaseModel):
    """Whether one more photo fits in a species gallery or the inbox."""

    allowed: bool
    current_count: int = Field(..., ge=0)
    limit: int = Field(..., ge=1, description="Ceiling the count is checked against.")
    error: str | None = Field(
        default=None,
        description="What the user must do (swap a photo, assign inbox photos) when not allowed.",
    )


class LinkDetectionsResponse(BaseModel):
    linked: int = Field(..., ge=0, description="Detection rows now pointing at the species.")
