from fastapi import APIRouter

from app.api.v1 import (
    batches,
    health,
    matching,
    recommendations,
    reviews,
    risk,
    tax,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(batches.router, prefix="/v1/batches", tags=["batches"])
api_router.include_router(matching.router, prefix="/v1/matching", tags=["matching"])
api_router.include_router(reviews.router, prefix="/v1/reviews", tags=["reviews"])
api_router.include_router(tax.router, prefix="/v1/tax", tags=["tax"])
api_router.include_router(risk.router, prefix="/v1/risk", tags=["risk"])
api_router.include_router(recommendations.router, prefix="/v1/recommendations", tags=["recommendations"])
