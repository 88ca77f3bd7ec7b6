"""Import tax endpoints: ad-hoc cascade, customs value from trade terms, and batch tax."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import http_error
from app.config import settings
from app.dependencies import get_db, get_tax_service
from app.exceptions import RepositoryError
from app.schemas.batch import BatchResponse
from app.schemas.tax import (
    BatchTaxResponse,
    ClearanceSummary,
    ClearanceTypeRequest,
    CustomsValueRequest,
    CustomsValueResponse,
    ItemOriginUpdateRequest,
    ItemOriginUpdateResponse,
    ItemTaxUpdateRequest,
    ItemTaxUpdateResponse,
    TaxBreakdownResponse,
    TaxComputeRequest,
    TaxDetailsResponse,
    TradeTermsRequest,
)
from app.tax_engine.customs_value import calculate_customs_value
from app.tax_engine.service import RATE_FIELDS, TaxService

router = APIRouter()


@router.post("/compute", response_model=TaxBreakdownResponse)
async def compute_tax(
    request: TaxComputeRequest,
    service: TaxService = Depends(get_tax_service),
) -> TaxBreakdownResponse:
    """Run the tax cascade on explicit inputs."""
    try:
        breakdown = service.compute(**request.model_dump())
    except ValueError as e:
        raise http_error(e)
    return TaxBreakdownResponse(**breakdown.as_dict())


@router.post("/customs-value", response_model=CustomsValueResponse)
async def customs_value(request: CustomsValueRequest) -> CustomsValueResponse:
    """CIF-basis customs value for an invoice quoted under an Incoterms rule."""
    terms = request.model_dump(exclude={"incoterm", "invoice_value"})
    try:
        value = calculate_customs_value(
            request.incoterm,
            request.invoice_value,
            insurance_rate=Decimal(str(settings.default_insurance_rate)),
            **terms,
        )
    except ValueError as e:
        raise http_error(e)
    return CustomsValueResponse(
        incoterm=request.incoterm.upper(),
        invoice_value=request.invoice_value,
        customs_value=value,
    )


@router.post("/batches/{batch_id}/compute", response_model=BatchTaxResponse)
async def compute_batch_tax(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: TaxService = Depends(get_tax_service),
) -> BatchTaxResponse:
    try:
        result = await service.compute_batch(db, batch_id)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return BatchTaxResponse(**result)


@router.get("/batches/{batch_id}", response_model=TaxDetailsResponse)
async def batch_tax_details(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: TaxService = Depends(get_tax_service),
) -> TaxDetailsResponse:
    """Stored totals, clearance split and per-code grouping."""
    try:
        details = await service.get_tax_details(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    return TaxDetailsResponse(**details)


@router.put("/batches/{batch_id}/clearance-type", response_model=ClearanceSummary)
async def set_clearance_type(
    batch_id: uuid.UUID,
    request: ClearanceTypeRequest,
    db: AsyncSession = Depends(get_db),
    service: TaxService = Depends(get_tax_service),
) -> ClearanceSummary:
    try:
        summary = await service.set_clearance_type(db, batch_id, request.clearance_type)
    except ValueError as e:
        raise http_error(e)
    return ClearanceSummary(**summary)


@router.put("/batches/{batch_id}/trade-terms", response_model=BatchResponse)
async def set_trade_terms(
    batch_id: uuid.UUID,
    request: TradeTermsRequest,
    db: AsyncSession = Depends(get_db),
    service: TaxService = Depends(get_tax_service),
) -> BatchResponse:
    """Store incoterm, cost legs and allocation method; recompute tax to apply them."""
    try:
        batch = await service.set_trade_terms(db, batch_id, **request.model_dump(exclude_unset=True))
    except ValueError as e:
        raise http_error(e)
    return BatchResponse.model_validate(batch)


@router.put("/items/{item_id}", response_model=ItemTaxUpdateResponse)
async def update_item_tax(
    item_id: uuid.UUID,
    request: ItemTaxUpdateRequest,
    db: AsyncSession = Depends(get_db),
    service: TaxService = Depends(get_tax_service),
) -> ItemTaxUpdateResponse:
    """Override an item's code, customs value or rates, then recompute item and batch."""
    overrides = request.model_dump(include=set(RATE_FIELDS), exclude_none=True)
    try:
        result = await service.update_item_tax(
            db,
            item_id,
            hs_code=request.hs_code,
            customs_value=request.customs_value,
            rate_overrides=overrides,
            updated_by=request.updated_by,
        )
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return ItemTaxUpdateResponse(**result)


@router.put("/items/{item_id}/origin", response_model=ItemOriginUpdateResponse)
async def update_item_origin(
    item_id: uuid.UUID,
    request: ItemOriginUpdateRequest,
    db: AsyncSession = Depends(get_db),
    service: TaxService = Depends(get_tax_service),
) -> ItemOriginUpdateResponse:
    """Change an item's origin; its rates are re-resolved for the new origin."""
    try:
        result = await service.update_item_origin(
            db,
            item_id,
            request.origin_country,
            refresh_rates=request.refresh_rates,
            updated_by=request.updated_by,
        )
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return ItemOriginUpdateResponse(**result)
