"""Recommendation endpoints: lower-tax alternative codes and tax exposure of codes and batches."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import http_error
from app.dependencies import get_db, get_recommender
from app.exceptions import RepositoryError
from app.recommender.service import AlternativeCodeRecommender
from app.schemas.recommendation import (
    AlternativesResponse,
    AntiDumpingEntry,
    BatchTaxRiskResponse,
    TaxRiskResponse,
)

router = APIRouter()


@router.get("/alternatives", response_model=AlternativesResponse)
async def find_alternatives(
    hs_code: str,
    product_name: str | None = None,
    origin: str | None = None,
    limit: int | None = Query(None, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    recommender: AlternativeCodeRecommender = Depends(get_recommender),
) -> AlternativesResponse:
    """Codes for the same product that carry a lower effective tax rate, best first."""
    try:
        result = await recommender.find_alternatives(db, hs_code, product_name, origin, limit)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return AlternativesResponse(**result)


@router.get("/tax-risk", response_model=TaxRiskResponse)
async def tax_risk(
    hs_code: str,
    origin: str | None = None,
    db: AsyncSession = Depends(get_db),
    recommender: AlternativeCodeRecommender = Depends(get_recommender),
) -> TaxRiskResponse:
    try:
        result = await recommender.analyze_tax_risk(db, hs_code, origin)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return TaxRiskResponse(**result)


@router.get("/anti-dumping", response_model=list[AntiDumpingEntry])
async def anti_dumping_codes(
    origin: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    recommender: AlternativeCodeRecommender = Depends(get_recommender),
) -> list[AntiDumpingEntry]:
    """Codes carrying anti-dumping duty for the origin, highest rate first."""
    try:
        rows = await recommender.get_anti_dumping_codes(db, origin, limit)
    except RepositoryError as e:
        raise http_error(e)
    return [AntiDumpingEntry(**row) for row in rows]


@router.post("/batches/{batch_id}/tax-risk", response_model=BatchTaxRiskResponse)
async def analyze_batch_tax_risk(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    recommender: AlternativeCodeRecommender = Depends(get_recommender),
) -> BatchTaxRiskResponse:
    try:
        result = await recommender.analyze_batch_tax_risk(db, batch_id)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return BatchTaxRiskResponse(**result)
