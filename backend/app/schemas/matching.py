"""Pydantic schemas for classification matching."""

import uuid

from pydantic import BaseModel, Field

from app.schemas.batch import CargoItemResponse


class MatchPreviewRequest(BaseModel):
    product_name: str = Field(min_length=1, max_length=500)
    customer_hs_code: str | None = None
    material: str | None = None
    origin_country: str | None = None


class RateSnapshotResponse(BaseModel):
    duty_rate: float
    vat_rate: float
    anti_dumping_rate: float
    countervailing_rate: float


class MatchPreviewResponse(BaseModel):
    hs_code: str | None = None
    confidence: int
    source: str | None = None
    status: str
    description: str | None = None
    rates: RateSnapshotResponse | None = None
    notes: list[str] = []


class ItemError(BaseModel):
    item_id: str
    error: str


class BatchMatchResponse(BaseModel):
    batch_id: uuid.UUID
    processed: int
    auto_approved: int = 0
    review: int = 0
    no_match: int = 0
    errors: list[ItemError] = []


class MatchStatsResponse(BaseModel):
    batch_id: uuid.UUID
    total: int
    matched: int
    unmatched: int
    missing_origin: int
    missing_material: int
    pending: int = 0
    auto_approved: int = 0
    review: int = 0
    no_match: int = 0
    approved: int = 0
    rejected: int = 0


class ItemListResponse(BaseModel):
    items: list[CargoItemResponse] = []
    total: int


class TranslationRefreshResponse(BaseModel):
    entries: int
