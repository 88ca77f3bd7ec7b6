"""Pydantic schemas for human review of classified items."""

import uuid

from pydantic import BaseModel, Field

from app.schemas.matching import ItemError


class ReviewActionRequest(BaseModel):
    action: str = Field(..., description="approve or reject")
    hs_code: str | None = Field(None, description="Replacement code when approving")
    note: str | None = None
    reviewed_by: str = "user"


class BulkReviewRequest(BaseModel):
    item_ids: list[uuid.UUID] = Field(..., min_length=1)
    action: str = Field(..., description="approve or reject")
    note: str | None = None
    reviewed_by: str = "user"


class BulkReviewResponse(BaseModel):
    action: str
    requested: int
    succeeded: list[str] = []
    errors: list[ItemError] = []


class ReviewStats(BaseModel):
    total: int = 0
    pending: int = 0
    auto_approved: int = 0
    review: int = 0
    no_match: int = 0
    approved: int = 0
    rejected: int = 0
