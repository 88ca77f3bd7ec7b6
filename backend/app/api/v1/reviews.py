"""Review endpoints: approve or reject classified cargo items, one at a time or in bulk."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import http_error
from app.dependencies import get_db, get_review_service
from app.exceptions import RepositoryError
from app.hitl_workflow.service import ReviewService
from app.schemas.batch import CargoItemResponse
from app.schemas.review import (
    BulkReviewRequest,
    BulkReviewResponse,
    ReviewActionRequest,
    ReviewStats,
)

router = APIRouter()


@router.get("/stats", response_model=ReviewStats)
async def get_stats(
    batch_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    service: ReviewService = Depends(get_review_service),
) -> ReviewStats:
    """Item counts per match status, across all batches or for one."""
    stats = await service.get_stats(db, batch_id)
    return ReviewStats(**stats)


@router.post("/bulk", response_model=BulkReviewResponse)
async def bulk_review(
    request: BulkReviewRequest,
    db: AsyncSession = Depends(get_db),
    service: ReviewService = Depends(get_review_service),
) -> BulkReviewResponse:
    try:
        result = await service.bulk_review(
            db, request.item_ids, request.action, reviewed_by=request.reviewed_by, note=request.note,
        )
    except ValueError as e:
        raise http_error(e)
    return BulkReviewResponse(**result)


@router.post("/items/{item_id}", response_model=CargoItemResponse)
async def review_item(
    item_id: uuid.UUID,
    request: ReviewActionRequest,
    db: AsyncSession = Depends(get_db),
    service: ReviewService = Depends(get_review_service),
) -> CargoItemResponse:
    """Approve (optionally with a replacement code) or reject one item."""
    try:
        item = await service.review_item(
            db,
            item_id,
            request.action,
            hs_code=request.hs_code,
            reviewed_by=request.reviewed_by,
            note=request.note,
        )
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return CargoItemResponse.model_validate(item)
