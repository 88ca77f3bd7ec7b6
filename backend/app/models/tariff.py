"""ORM model for the tariff catalog — read-only reference data."""

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.models.base import Base, TimestampMixin
from app.tariff_repository.codes import normalize_hs_code


class TariffRate(TimestampMixin, Base):
    __tablename__ = "tariff_rates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hs_code: Mapped[str] = mapped_column(String(10), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    description_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Null or empty applies to all origins; settings.rest_of_world_code marks "rest of world"
    origin_country_code: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    geographical_area: Mapped[str | None] = mapped_column(String(50), nullable=True)
    duty_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    vat_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    anti_dumping_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    countervailing_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @validates("hs_code")
    def _normalize_code(self, key, value):
        return normalize_hs_code(value)
