"""ORM model for product-name translations used for display only."""

import uuid

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class ProductNameTranslation(TimestampMixin, Base):
    __tablename__ = "product_name_translations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(500), unique=True)
    name_en: Mapped[str] = mapped_column(String(500))
