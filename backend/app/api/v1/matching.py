"""
Classification matching endpoints.

Preview a match for ad-hoc input, match a batch's pending items, and inspect
what is left for human review.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import http_error
from app.batches.service import get_batch
from app.dependencies import get_db, get_matcher, get_translation_cache
from app.exceptions import RepositoryError
from app.hitl_workflow.triggers import classify_match
from app.matching_engine.service import ClassificationMatcher
from app.schemas.batch import CargoItemResponse
from app.schemas.matching import (
    BatchMatchResponse,
    ItemListResponse,
    MatchPreviewRequest,
    MatchPreviewResponse,
    MatchStatsResponse,
    RateSnapshotResponse,
    TranslationRefreshResponse,
)
from app.translation.cache import NameTranslationCache

router = APIRouter()


@router.post("/preview", response_model=MatchPreviewResponse)
async def preview_match(
    request: MatchPreviewRequest,
    db: AsyncSession = Depends(get_db),
    matcher: ClassificationMatcher = Depends(get_matcher),
) -> MatchPreviewResponse:
    """Classify one product without storing anything."""
    try:
        outcome = await matcher.match(
            db,
            product_name=request.product_name,
            customer_hs_code=request.customer_hs_code,
            material=request.material,
            origin=request.origin_country,
        )
    except (ValueError, RepositoryError) as e:
        raise http_error(e)

    status, _ = classify_match(outcome.confidence, auto_approve_threshold=matcher.auto_approve_threshold)
    return MatchPreviewResponse(
        hs_code=outcome.hs_code,
        confidence=outcome.confidence,
        source=outcome.source.value if outcome.source else None,
        status=status.value,
        description=outcome.description,
        rates=RateSnapshotResponse(**outcome.rate_snapshot.as_dict()) if outcome.rate_snapshot else None,
        notes=outcome.notes,
    )


@router.post("/batches/{batch_id}/run", response_model=BatchMatchResponse)
async def run_batch_match(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    matcher: ClassificationMatcher = Depends(get_matcher),
) -> BatchMatchResponse:
    try:
        await get_batch(db, batch_id)
        result = await matcher.match_batch(db, batch_id)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return BatchMatchResponse(**result)


@router.get("/batches/{batch_id}/stats", response_model=MatchStatsResponse)
async def batch_match_stats(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    matcher: ClassificationMatcher = Depends(get_matcher),
) -> MatchStatsResponse:
    try:
        await get_batch(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    return MatchStatsResponse(**await matcher.get_stats(db, batch_id))


@router.get("/batches/{batch_id}/review-queue", response_model=ItemListResponse)
async def review_queue(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    matcher: ClassificationMatcher = Depends(get_matcher),
) -> ItemListResponse:
    """Items awaiting a decision, most confident first."""
    try:
        await get_batch(db, batch_id)
    except ValueError as e:
        raise http_error(e)
    items = await matcher.get_review_queue(db, batch_id)
    return ItemListResponse(
        items=[CargoItemResponse.model_validate(i) for i in items],
        total=len(items),
    )


@router.post("/items/{item_id}/rematch", response_model=CargoItemResponse)
async def rematch_item(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    matcher: ClassificationMatcher = Depends(get_matcher),
) -> CargoItemResponse:
    try:
        item = await matcher.rematch_item(db, item_id)
    except (ValueError, RepositoryError) as e:
        raise http_error(e)
    return CargoItemResponse.model_validate(item)


@router.post("/translations/refresh", response_model=TranslationRefreshResponse)
async def refresh_translations(
    db: AsyncSession = Depends(get_db),
    cache: NameTranslationCache = Depends(get_translation_cache),
) -> TranslationRefreshResponse:
    """Reload product-name translations now instead of waiting for the TTL."""
    try:
        count = await cache.refresh(db)
    except RepositoryError as e:
        raise http_error(e)
    return TranslationRefreshResponse(entries=count)
