"""Pydantic schemas for import tax computation."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.matching import ItemError


class TaxComputeRequest(BaseModel):
    customs_value: float
    duty_rate: float
    vat_rate: float
    anti_dumping_rate: float = 0
    countervailing_rate: float = 0
    clearance_type: str = "standard"


class TaxBreakdownResponse(BaseModel):
    customs_value: float
    duty_rate: float
    vat_rate: float
    anti_dumping_rate: float
    countervailing_rate: float
    duty: float
    anti_dumping: float
    countervailing: float
    other_tax: float
    vat_base: float
    vat: float
    total_tax: float
    clearance_type: str
    payable_vat: float
    deferred_vat: float
    payable_total: float
    effective_tax_rate: float


class CustomsValueRequest(BaseModel):
    incoterm: str
    invoice_value: float
    international_freight: float = 0
    domestic_freight_export: float = 0
    domestic_freight_import: float = 0
    unloading_cost: float = 0
    insurance_cost: float = 0
    duty_rate: float = 0
    vat_rate: float = 0


class CustomsValueResponse(BaseModel):
    incoterm: str
    invoice_value: float
    customs_value: float


class ClearanceSummary(BaseModel):
    clearance_type: str
    total_duty: float
    total_other_tax: float
    total_vat: float
    payable_vat: float
    deferred_vat: float
    payable_total: float


class TaxItemLine(BaseModel):
    item_id: str
    item_no: int | None = None
    product_name: str | None = None
    hs_code: str | None = None
    customs_value: float | None = None
    duty_rate: float | None = None
    vat_rate: float | None = None
    anti_dumping_rate: float | None = None
    countervailing_rate: float | None = None
    duty: float | None = None
    vat: float | None = None
    other_tax: float | None = None
    total_tax: float | None = None


class TaxCodeGroup(BaseModel):
    hs_code: str
    item_count: int
    customs_value: float
    duty: float
    vat: float
    other_tax: float
    total_tax: float


class BatchTaxItem(TaxBreakdownResponse):
    item_id: str
    item_no: int | None = None
    product_name: str | None = None
    hs_code: str | None = None


class BatchTaxResponse(BaseModel):
    batch_id: uuid.UUID
    item_count: int
    total_value: float
    total_customs_value: float
    total_duty: float
    total_vat: float
    total_other_tax: float
    total_tax: float
    summary: ClearanceSummary
    items: list[BatchTaxItem] = []
    errors: list[ItemError] = []


class TaxDetailsResponse(BaseModel):
    batch_id: uuid.UUID
    item_count: int
    total_value: float
    total_customs_value: float
    total_duty: float
    total_vat: float
    total_other_tax: float
    total_tax: float
    summary: ClearanceSummary
    by_hs_code: list[TaxCodeGroup] = []
    items: list[TaxItemLine] = []
    tax_calculated_at: datetime | None = None


class ItemTaxUpdateRequest(BaseModel):
    hs_code: str | None = None
    customs_value: float | None = None
    duty_rate: float | None = None
    vat_rate: float | None = None
    anti_dumping_rate: float | None = None
    countervailing_rate: float | None = None
    updated_by: str = "user"


class ItemTaxUpdateResponse(TaxBreakdownResponse):
    item_id: uuid.UUID
    hs_code: str | None = None
    included_in_batch: bool
    rates_refreshed: bool


class ItemOriginUpdateRequest(BaseModel):
    origin_country: str = Field(..., min_length=1, max_length=20)
    refresh_rates: bool = True
    updated_by: str = "user"


class ItemOriginUpdateResponse(BaseModel):
    item_id: uuid.UUID
    hs_code: str | None = None
    origin_country: str
    rates_refreshed: bool
    tax_recomputed: bool
    duty_rate: float | None = None
    vat_rate: float | None = None
    anti_dumping_rate: float | None = None
    countervailing_rate: float | None = None
    total_tax: float | None = None


class ClearanceTypeRequest(BaseModel):
    clearance_type: str = Field(..., description="standard or deferred")


class TradeTermsRequest(BaseModel):
    incoterm: str | None = None
    international_freight: float | None = None
    domestic_freight_export: float | None = None
    domestic_freight_import: float | None = None
    unloading_cost: float | None = None
    insurance_cost: float | None = None
    allocation_method: str | None = None
