"""Pydantic schemas for declared-value and inspection risk."""

import uuid
from datetime import date

from pydantic import BaseModel, Field

from app.models.risk_record import DeclarationResult, InspectionResult, InspectionType
from app.schemas.matching import ItemError


class DeclarationStatsBody(BaseModel):
    total_count: int
    pass_count: int
    questioned_count: int
    rejected_count: int
    pass_rate: int
    min_pass_price: float | None = None
    max_pass_price: float | None = None
    avg_pass_price: float | None = None
    p10_pass_price: float | None = None
    p25_pass_price: float | None = None


class DeclarationStatsResponse(BaseModel):
    hs_code: str
    origin_country: str | None = None
    found: bool
    stats: DeclarationStatsBody | None = None
    suggested_min_price: float | None = None
    risk_level: str
    message: str | None = None


class DeclarationCheckRequest(BaseModel):
    hs_code: str
    unit_price: float
    origin_country: str | None = None
    unit: str | None = None


class DeclarationCheckResponse(BaseModel):
    hs_code: str
    origin_country: str | None = None
    unit_price: float
    found: bool
    risk_level: str
    warnings: list[str] = []
    suggestions: list[str] = []
    suggested_min_price: float | None = None
    stats: DeclarationStatsBody | None = None
    message: str | None = None


class BatchDeclarationItem(BaseModel):
    item_id: str
    item_no: int | None = None
    product_name: str | None = None
    hs_code: str
    unit_price: float
    risk_level: str
    suggested_min_price: float | None = None
    warnings: list[str] = []


class BatchDeclarationResponse(BaseModel):
    batch_id: uuid.UUID
    checked: int
    summary: dict[str, int]
    items: list[BatchDeclarationItem] = []
    errors: list[ItemError] = []


class DeclarationRecordCreate(BaseModel):
    hs_code: str
    declared_unit_price: float
    origin_country: str | None = None
    product_name: str | None = None
    unit: str | None = None
    quantity: float | None = None
    currency: str = "EUR"
    declaration_date: date | None = None
    result: str = "pending"
    customs_note: str | None = None
    batch_id: uuid.UUID | None = None


class DeclarationResolveRequest(BaseModel):
    result: str = Field(..., description="passed, questioned or rejected")
    customs_note: str | None = None


class DeclarationRecordResponse(BaseModel):
    id: uuid.UUID
    hs_code: str
    origin_country: str | None = None
    product_name: str | None = None
    declared_unit_price: float
    unit: str | None = None
    quantity: float | None = None
    currency: str
    declaration_date: date | None = None
    result: DeclarationResult
    customs_note: str | None = None
    batch_id: uuid.UUID | None = None

    model_config = {"from_attributes": True}


class InspectionStatsBody(BaseModel):
    total_count: int
    inspected_count: int
    physical_count: int
    document_count: int
    scan_count: int
    passed_count: int
    failed_count: int
    inspection_rate: int
    physical_rate: int
    pass_rate: int
    total_penalty: float
    avg_delay_days: float
    max_delay_days: int


class InspectionStatsResponse(BaseModel):
    hs_code: str
    origin_country: str | None = None
    found: bool
    stats: InspectionStatsBody | None = None
    risk_level: str
    message: str | None = None


class WatchlistEntry(BaseModel):
    hs_code: str
    origin_country: str | None = None
    product_name: str | None = None
    total_count: int
    inspected_count: int
    physical_count: int
    inspection_rate: int
    physical_rate: int
    risk_level: str


class BatchInspectionItem(BaseModel):
    item_id: str
    item_no: int | None = None
    product_name: str | None = None
    hs_code: str
    risk_level: str
    risk_score: int
    inspection_rate: int | None = None
    physical_rate: int | None = None
    message: str | None = None


class BatchInspectionResponse(BaseModel):
    batch_id: uuid.UUID
    risk_score: int
    risk_level: str
    high_risk_count: int
    medium_risk_count: int
    items: list[BatchInspectionItem] = []
    warnings: list[str] = []
    errors: list[ItemError] = []


class InspectionRecordCreate(BaseModel):
    hs_code: str
    origin_country: str | None = None
    product_name: str | None = None
    inspection_type: str = "none"
    result: str = "pending"
    delay_days: int = 0
    penalty_amount: float = 0
    inspection_date: date | None = None
    notes: str | None = None
    batch_id: uuid.UUID | None = None


class InspectionResolveRequest(BaseModel):
    inspection_type: str
    result: str = Field(..., description="passed or failed")
    delay_days: int = 0
    penalty_amount: float = 0
    notes: str | None = None


class InspectionRecordResponse(BaseModel):
    id: uuid.UUID
    hs_code: str
    origin_country: str | None = None
    product_name: str | None = None
    inspection_type: InspectionType
    result: InspectionResult
    delay_days: int
    penalty_amount: float
    inspection_date: date | None = None
    notes: str | None = None
    batch_id: uuid.UUID | None = None

    model_config = {"from_attributes": True}


class RecordedCountResponse(BaseModel):
    batch_id: uuid.UUID
    recorded: int


class BatchResolvedCountResponse(BaseModel):
    batch_id: uuid.UUID
    result: str
    updated: int
