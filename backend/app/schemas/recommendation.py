"""Pydantic schemas for lower-tax alternative codes and code tax risk."""

import uuid

from pydantic import BaseModel


class CurrentCodeSummary(BaseModel):
    hs_code: str
    description: str | None = None
    origin_country_code: str | None = None
    duty_rate: float
    vat_rate: float
    anti_dumping_rate: float
    countervailing_rate: float
    effective_tax_rate: float
    total_tax: float


class AlternativeCode(BaseModel):
    hs_code: str
    description: str | None = None
    description_en: str | None = None
    origin_country_code: str | None = None
    strategy: str
    duty_rate: float
    vat_rate: float
    anti_dumping_rate: float
    countervailing_rate: float
    effective_tax_rate: float
    total_tax: float
    savings: float
    risk_level: str


class AlternativesResponse(BaseModel):
    found: bool
    hs_code: str
    origin_country: str
    message: str | None = None
    current: CurrentCodeSummary | None = None
    alternatives: list[AlternativeCode] = []
    total_alternatives: int = 0


class TaxRiskResponse(BaseModel):
    found: bool
    hs_code: str
    origin_country: str
    risk_level: str
    reasons: list[str] = []
    effective_tax_rate: float | None = None
    message: str | None = None


class AntiDumpingEntry(BaseModel):
    hs_code: str
    description: str | None = None
    description_en: str | None = None
    origin_country_code: str | None = None
    duty_rate: float
    anti_dumping_rate: float
    countervailing_rate: float
    risk_level: str


class TaxRiskItem(BaseModel):
    item_id: str
    item_no: int
    product_name: str
    hs_code: str
    anti_dumping_rate: float
    reasons: list[str] = []


class BatchTaxRiskResponse(BaseModel):
    batch_id: uuid.UUID
    total_items: int
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    risk_score: int
    risk_level: str
    risk_items: list[TaxRiskItem] = []
