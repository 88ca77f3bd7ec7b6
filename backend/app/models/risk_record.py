"""ORM models for historical customs outcomes — append-only observation populations."""

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Enum as SAEnum, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class DeclarationResult(str, enum.Enum):
    PENDING = "pending"
    PASSED = "passed"
    QUESTIONED = "questioned"
    REJECTED = "rejected"


class InspectionType(str, enum.Enum):
    NONE = "none"
    DOCUMENT = "document"
    SCAN = "scan"
    PHYSICAL = "physical"
    FULL = "full"


class InspectionResult(str, enum.Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


def _enum_values(e):
    return [m.value for m in e]


class DeclarationValueRecord(TimestampMixin, Base):
    __tablename__ = "declaration_value_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hs_code: Mapped[str] = mapped_column(String(10), index=True)
    origin_country: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    product_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    declared_unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4))
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    declaration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    result: Mapped[DeclarationResult] = mapped_column(
        SAEnum(DeclarationResult, name="declaration_result", values_callable=_enum_values),
        default=DeclarationResult.PENDING,
    )
    customs_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    batch_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)


class InspectionRecord(TimestampMixin, Base):
    __tablename__ = "inspection_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hs_code: Mapped[str] = mapped_column(String(10), index=True)
    origin_country: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    product_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    inspection_type: Mapped[InspectionType] = mapped_column(
        SAEnum(InspectionType, name="inspection_type", values_callable=_enum_values),
        default=InspectionType.NONE,
    )
    result: Mapped[InspectionResult] = mapped_column(
        SAEnum(InspectionResult, name="inspection_result", values_callable=_enum_values),
        default=InspectionResult.PENDING,
    )
    delay_days: Mapped[int] = mapped_column(Integer, default=0)
    penalty_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    inspection_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    batch_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
