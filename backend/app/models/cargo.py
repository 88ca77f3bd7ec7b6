"""ORM models for import batches and their cargo line items."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class MatchStatus(str, enum.Enum):
    PENDING = "pending"
    AUTO_APPROVED = "auto_approved"
    REVIEW = "review"
    NO_MATCH = "no_match"
    APPROVED = "approved"
    REJECTED = "rejected"


class MatchSource(str, enum.Enum):
    EXACT = "exact"
    PREFIX_8 = "prefix_8"
    PREFIX_6 = "prefix_6"
    HISTORY = "history"
    FUZZY = "fuzzy"
    MANUAL = "manual"


class ClearanceType(str, enum.Enum):
    STANDARD = "standard"
    DEFERRED = "deferred"


class AllocationMethod(str, enum.Enum):
    BY_VALUE = "by_value"
    BY_WEIGHT = "by_weight"


def _enum_values(e):
    return [m.value for m in e]


class ImportBatch(TimestampMixin, Base):
    __tablename__ = "import_batches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    clearance_type: Mapped[ClearanceType] = mapped_column(
        SAEnum(ClearanceType, name="clearance_type", values_callable=_enum_values),
        default=ClearanceType.STANDARD,
    )

    # Trade terms
    incoterm: Mapped[str | None] = mapped_column(String(10), nullable=True)
    international_freight: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    domestic_freight_export: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    domestic_freight_import: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    unloading_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    insurance_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    allocation_method: Mapped[AllocationMethod] = mapped_column(
        SAEnum(AllocationMethod, name="allocation_method", values_callable=_enum_values),
        default=AllocationMethod.BY_VALUE,
    )

    # Derived totals, always recomputable from items
    item_count: Mapped[int] = mapped_column(Integer, default=0)
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_customs_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_duty: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_vat: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_other_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    tax_calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    risk_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    risk_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    risk_analyzed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["CargoItem"]] = relationship(
        back_populates="batch", cascade="all, delete-orphan", order_by="CargoItem.item_no"
    )


class CargoItem(TimestampMixin, Base):
    __tablename__ = "cargo_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("import_batches.id"), index=True)
    item_no: Mapped[int] = mapped_column(Integer, default=0)

    product_name: Mapped[str] = mapped_column(String(500))
    product_name_en: Mapped[str | None] = mapped_column(String(500), nullable=True)
    material: Mapped[str | None] = mapped_column(String(200), nullable=True)
    origin_country: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    total_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    gross_weight: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    customs_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    # Classification
    customer_hs_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    matched_hs_code: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    match_confidence: Mapped[int] = mapped_column(Integer, default=0)
    match_source: Mapped[MatchSource | None] = mapped_column(
        SAEnum(MatchSource, name="match_source", values_callable=_enum_values), nullable=True
    )
    match_status: Mapped[MatchStatus] = mapped_column(
        SAEnum(MatchStatus, name="match_status", values_callable=_enum_values),
        default=MatchStatus.PENDING,
        index=True,
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Rate snapshot
    duty_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    vat_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    anti_dumping_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    countervailing_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)

    # Tax breakdown
    duty_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    vat_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    other_tax_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    total_tax: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    # Risk annotations
    declaration_risk: Mapped[str | None] = mapped_column(String(20), nullable=True)
    min_safe_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    price_warning: Mapped[str | None] = mapped_column(Text, nullable=True)
    inspection_risk: Mapped[str | None] = mapped_column(String(20), nullable=True)
    inspection_risk_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    batch: Mapped[ImportBatch] = relationship(back_populates="items")
