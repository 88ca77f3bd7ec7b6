"""
Customs risk endpoints.

Declared-value risk against past declarations, inspection risk against past
inspections, the inspection watchlist, and the record stores feeding both.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import http_error
from app.dependencies import get_db, get_risk_service
from app.exceptions import RepositoryError
from app.risk_analytics.service import RiskAnalyticsService
from app.schemas.risk import (
    BatchDeclarationResponse,
    BatchResolvedCountResponse,
    BatchInspectionResponse,
    DeclarationCheckRequest,
    DeclarationCheckResponse,
    DeclarationRecordCreate,
    DeclarationRecordResponse,
    DeclarationResolveRequest,
    DeclarationStatsResponse,
    InspectionRecordCreate,
    InspectionRecordResponse,
    InspectionResolveRequest,
    InspectionStatsResponse,
    RecordedCountResponse,
    WatchlistEntry,
)

router = APIRouter()


# ── Declared value ──


@router.get("/declarations/stats", response_model=DeclarationStatsResponse)
async def declaration_stats(
    hs_code: str,
    origin: str | None = None,
    unit: str | None = None,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> DeclarationStatsResponse:
    try:
        result = await service.get_declaration_stats(db, hs_code, origin, unit)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return DeclarationStatsResponse(**result)


@router.post("/declarations/check", response_model=DeclarationCheckResponse)
async def check_declaration(
    request: DeclarationCheckRequest,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> DeclarationCheckResponse:
    """Risk of declaring ``unit_price`` for a code, with warnings and a safe minimum."""
    try:
        result = await service.check_declaration_risk(
            db, request.hs_code, request.unit_price, request.origin_country, request.unit
        )
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return DeclarationCheckResponse(**result)


@router.post("/batches/{batch_id}/declarations/check", response_model=BatchDeclarationResponse)
async def check_batch_declarations(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> BatchDeclarationResponse:
    try:
        result = await service.check_batch_declarations(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    return BatchDeclarationResponse(**result)


@router.post("/declarations", response_model=DeclarationRecordResponse, status_code=201)
async def record_declaration(
    request: DeclarationRecordCreate,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> DeclarationRecordResponse:
    try:
        record = await service.record_declaration(db, **request.model_dump())
    except ValueError as e:
        raise http_error(e)
    return DeclarationRecordResponse.model_validate(record)


@router.post("/declarations/{record_id}/resolve", response_model=DeclarationRecordResponse)
async def resolve_declaration(
    record_id: uuid.UUID,
    request: DeclarationResolveRequest,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> DeclarationRecordResponse:
    try:
        record = await service.resolve_declaration(db, record_id, request.result, request.customs_note)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return DeclarationRecordResponse.model_validate(record)


@router.post("/batches/{batch_id}/declarations/record", response_model=RecordedCountResponse)
async def record_batch_declarations(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> RecordedCountResponse:
    """Seed pending declaration records from a batch's confirmed items."""
    try:
        count = await service.record_batch_declarations(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    return RecordedCountResponse(batch_id=batch_id, recorded=count)


@router.post("/batches/{batch_id}/declarations/resolve", response_model=BatchResolvedCountResponse)
async def resolve_batch_declarations(
    batch_id: uuid.UUID,
    request: DeclarationResolveRequest,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> BatchResolvedCountResponse:
    """Apply one customs outcome to all of a batch's pending declarations."""
    try:
        count = await service.resolve_batch_declarations(
            db, batch_id, request.result, request.customs_note
        )
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return BatchResolvedCountResponse(batch_id=batch_id, result=request.result, updated=count)


# ── Inspection ──


@router.get("/inspections/stats", response_model=InspectionStatsResponse)
async def inspection_stats(
    hs_code: str,
    origin: str | None = None,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> InspectionStatsResponse:
    try:
        result = await service.get_inspection_stats(db, hs_code, origin)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return InspectionStatsResponse(**result)


@router.get("/inspections/watchlist", response_model=list[WatchlistEntry])
async def inspection_watchlist(
    origin: str | None = None,
    min_rate: float | None = Query(None, ge=0, le=100),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> list[WatchlistEntry]:
    """Code/origin pairs inspected most often, highest rate first."""
    try:
        rows = await service.get_high_inspection_codes(db, origin, min_rate, limit)
    except RepositoryError as e:
        raise http_error(e)
    return [WatchlistEntry(**row) for row in rows]


@router.post("/batches/{batch_id}/inspections/analyze", response_model=BatchInspectionResponse)
async def analyze_batch_inspections(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> BatchInspectionResponse:
    try:
        result = await service.analyze_batch_inspection_risk(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    return BatchInspectionResponse(**result)


@router.post("/inspections", response_model=InspectionRecordResponse, status_code=201)
async def record_inspection(
    request: InspectionRecordCreate,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> InspectionRecordResponse:
    try:
        record = await service.record_inspection(db, **request.model_dump())
    except ValueError as e:
        raise http_error(e)
    return InspectionRecordResponse.model_validate(record)


@router.post("/inspections/{record_id}/resolve", response_model=InspectionRecordResponse)
async def resolve_inspection(
    record_id: uuid.UUID,
    request: InspectionResolveRequest,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> InspectionRecordResponse:
    try:
        record = await service.resolve_inspection(db, record_id, **request.model_dump())
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return InspectionRecordResponse.model_validate(record)


@router.post("/batches/{batch_id}/inspections/record", response_model=RecordedCountResponse)
async def record_batch_inspections(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RiskAnalyticsService = Depends(get_risk_service),
) -> RecordedCountResponse:
    """Seed pending inspection records from a batch's confirmed items."""
    try:
        count = await service.record_batch_inspections(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    return RecordedCountResponse(batch_id=batch_id, recorded=count)
