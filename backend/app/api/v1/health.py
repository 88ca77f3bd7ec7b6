from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dependencies import get_db
from app.models.tariff import TariffRate
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Database reachability plus the size of the active tariff catalog.

    An empty catalog reports ``degraded``: nothing can be matched or taxed.
    """
    db_status = "healthy"
    catalog_status = "unknown"
    active_rows = None
    try:
        await db.execute(text("SELECT 1"))
        active_rows = (await db.execute(
            select(func.count(TariffRate.id)).where(TariffRate.is_active.is_(True))
        )).scalar_one()
        catalog_status = "loaded" if active_rows else "empty"
    except SQLAlchemyError:
        db_status = "unhealthy"

    healthy = db_status == "healthy" and catalog_status == "loaded"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        database=db_status,
        tariff_catalog=catalog_status,
        active_tariff_rows=active_rows,
        default_origin=settings.default_origin,
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
        version="0.1.0",
    )
