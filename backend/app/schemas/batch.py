"""Pydantic schemas for import batches and cargo items."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.cargo import AllocationMethod, ClearanceType, MatchSource, MatchStatus


class CargoItemCreate(BaseModel):
    product_name: str = Field(..., min_length=1)
    item_no: int | None = None
    product_name_en: str | None = None
    material: str | None = None
    origin_country: str | None = None
    unit: str | None = None
    quantity: float | None = None
    unit_price: float | None = None
    total_value: float | None = None
    gross_weight: float | None = None
    customs_value: float | None = None
    customer_hs_code: str | None = None


class BatchCreate(BaseModel):
    name: str | None = None
    clearance_type: str = "standard"
    incoterm: str | None = None
    items: list[CargoItemCreate] = Field(..., min_length=1)


class CargoItemResponse(BaseModel):
    id: uuid.UUID
    batch_id: uuid.UUID
    item_no: int
    product_name: str
    product_name_en: str | None = None
    material: str | None = None
    origin_country: str | None = None
    unit: str | None = None
    quantity: float | None = None
    unit_price: float | None = None
    total_value: float | None = None
    gross_weight: float | None = None
    customs_value: float | None = None

    customer_hs_code: str | None = None
    matched_hs_code: str | None = None
    match_confidence: int = 0
    match_source: MatchSource | None = None
    match_status: MatchStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_note: str | None = None

    duty_rate: float | None = None
    vat_rate: float | None = None
    anti_dumping_rate: float | None = None
    countervailing_rate: float | None = None
    duty_amount: float | None = None
    vat_amount: float | None = None
    other_tax_amount: float | None = None
    total_tax: float | None = None

    declaration_risk: str | None = None
    min_safe_price: float | None = None
    price_warning: str | None = None
    inspection_risk: str | None = None
    inspection_risk_score: int | None = None

    model_config = {"from_attributes": True}


class BatchResponse(BaseModel):
    id: uuid.UUID
    name: str | None = None
    clearance_type: ClearanceType
    incoterm: str | None = None
    international_freight: float = 0
    domestic_freight_export: float = 0
    domestic_freight_import: float = 0
    unloading_cost: float = 0
    insurance_cost: float = 0
    allocation_method: AllocationMethod
    item_count: int = 0
    total_value: float = 0
    total_customs_value: float = 0
    total_duty: float = 0
    total_vat: float = 0
    total_other_tax: float = 0
    total_tax: float = 0
    tax_calculated_at: datetime | None = None
    risk_score: int | None = None
    risk_level: str | None = None
    risk_analyzed_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class BatchDetailResponse(BatchResponse):
    items: list[CargoItemResponse] = []
