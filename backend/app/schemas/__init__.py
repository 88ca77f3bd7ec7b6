from app.schemas.batch import BatchCreate, BatchDetailResponse, BatchResponse, CargoItemResponse
from app.schemas.health import HealthResponse
from app.schemas.recommendation import AlternativesResponse, TaxRiskResponse

__all__ = [
    "AlternativesResponse",
    "BatchCreate",
    "BatchDetailResponse",
    "BatchResponse",
    "CargoItemResponse",
    "HealthResponse",
    "TaxRiskResponse",
]
