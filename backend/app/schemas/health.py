from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    database: str
    tariff_catalog: str
    active_tariff_rows: int | None = None
    default_origin: str
    timestamp: datetime
    environment: str
    version: str
