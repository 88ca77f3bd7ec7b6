from app.models.base import Base, TimestampMixin
from app.models.audit import AuditEvent
from app.models.cargo import (
    AllocationMethod,
    CargoItem,
    ClearanceType,
    ImportBatch,
    MatchSource,
    MatchStatus,
)
from app.models.history import MatchHistoryRecord
from app.models.risk_record import (
    DeclarationResult,
    DeclarationValueRecord,
    InspectionRecord,
    InspectionResult,
    InspectionType,
)
from app.models.tariff import TariffRate
from app.models.translation import ProductNameTranslation

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditEvent",
    "AllocationMethod",
    "CargoItem",
    "ClearanceType",
    "ImportBatch",
    "MatchSource",
    "MatchStatus",
    "MatchHistoryRecord",
    "DeclarationResult",
    "DeclarationValueRecord",
    "InspectionRecord",
    "InspectionResult",
    "InspectionType",
    "TariffRate",
    "ProductNameTranslation",
]
