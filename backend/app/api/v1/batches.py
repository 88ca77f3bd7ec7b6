"""Import batch endpoints: create a batch of cargo items, read it back, and view its audit trail."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import http_error
from app.audit_generator.service import AuditService
from app.batches.service import BatchService, get_batch, get_cargo_item
from app.dependencies import get_batch_service, get_db
from app.exceptions import NotFoundError
from app.models.cargo import ClearanceType
from app.schemas.audit import AuditEventResponse, BatchAuditTrail
from app.schemas.batch import BatchCreate, BatchDetailResponse

router = APIRouter()


@router.post("", response_model=BatchDetailResponse, status_code=201)
async def create_batch(
    request: BatchCreate,
    db: AsyncSession = Depends(get_db),
    service: BatchService = Depends(get_batch_service),
) -> BatchDetailResponse:
    """Create a batch; every item starts in ``pending`` and is matched separately."""
    try:
        clearance = ClearanceType(request.clearance_type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown clearance type: {request.clearance_type}")
    try:
        batch = await service.create_batch(
            db,
            name=request.name,
            items=[item.model_dump() for item in request.items],
            clearance_type=clearance,
            incoterm=request.incoterm,
        )
    except ValueError as e:
        raise http_error(e)
    return BatchDetailResponse.model_validate(batch)


@router.get("/{batch_id}", response_model=BatchDetailResponse)
async def read_batch(batch_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> BatchDetailResponse:
    try:
        batch = await get_batch(db, batch_id, with_items=True)
    except NotFoundError as e:
        raise http_error(e)
    return BatchDetailResponse.model_validate(batch)


@router.get("/{batch_id}/audit", response_model=BatchAuditTrail)
async def batch_audit_trail(
    batch_id: uuid.UUID,
    event_type: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> BatchAuditTrail:
    """Audit events for the batch and its items (matching, review, tax), oldest first."""
    try:
        await get_batch(db, batch_id)
    except NotFoundError as e:
        raise http_error(e)
    events = await AuditService.get_batch_trail(db, batch_id, event_type=event_type)
    by_type: dict[str, int] = {}
    for event in events:
        by_type[event.event_type] = by_type.get(event.event_type, 0) + 1
    return BatchAuditTrail(
        batch_id=batch_id,
        total=len(events),
        by_event_type=by_type,
        events=[AuditEventResponse.model_validate(e) for e in events],
    )


@router.get("/items/{item_id}/audit", response_model=list[AuditEventResponse])
async def item_audit_trail(
    item_id: uuid.UUID,
    event_type: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> list[AuditEventResponse]:
    try:
        await get_cargo_item(db, item_id)
    except NotFoundError as e:
        raise http_error(e)
    events = await AuditService.get_entity_events(db, item_id, event_type=event_type)
    return [AuditEventResponse.model_validate(e) for e in events]
