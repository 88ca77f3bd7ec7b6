"""BatchService — creates import batches and loads batches and items by id."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import NotFoundError
from app.models.cargo import CargoItem, ClearanceType, ImportBatch
from app.tariff_repository.codes import validate_hs_code
from app.tax_engine.calculator import quantize_money, to_decimal

logger = logging.getLogger("customs.batches")


async def get_batch(db: AsyncSession, batch_id: uuid.UUID, *, with_items: bool = False) -> ImportBatch:
    query = select(ImportBatch).where(ImportBatch.id == batch_id)
    if with_items:
        query = query.options(selectinload(ImportBatch.items))
    batch = (await db.execute(query)).scalar_one_or_none()
    if batch is None:
        raise NotFoundError(f"Import batch {batch_id} not found")
    return batch


async def get_cargo_item(db: AsyncSession, item_id: uuid.UUID) -> CargoItem:
    item = (await db.execute(
        select(CargoItem).where(CargoItem.id == item_id)
    )).scalar_one_or_none()
    if item is None:
        raise NotFoundError(f"Cargo item {item_id} not found")
    return item


def _optional_decimal(value, field: str) -> Decimal | None:
    if value is None or value == "":
        return None
    return to_decimal(value, field)


class BatchService:
    """Import batch creation from already-parsed line items."""

    async def create_batch(
        self,
        db: AsyncSession,
        *,
        name: str | None,
        items: list[dict],
        clearance_type: ClearanceType = ClearanceType.STANDARD,
        incoterm: str | None = None,
    ) -> ImportBatch:
        """Persist a batch and its items in ``pending`` status.

        Customer codes are validated here; total value defaults to quantity × unit price.
        """
        batch = ImportBatch(
            id=uuid.uuid4(),
            name=name,
            clearance_type=clearance_type,
            incoterm=incoterm.upper() if incoterm else None,
        )
        db.add(batch)

        for index, raw in enumerate(items, start=1):
            field_prefix = f"items[{index - 1}]"
            customer_code = raw.get("customer_hs_code") or None
            if customer_code:
                validate_hs_code(customer_code, f"{field_prefix}.customer_hs_code")

            quantity = _optional_decimal(raw.get("quantity"), f"{field_prefix}.quantity")
            unit_price = _optional_decimal(raw.get("unit_price"), f"{field_prefix}.unit_price")
            total_value = _optional_decimal(raw.get("total_value"), f"{field_prefix}.total_value")
            if total_value is None and quantity is not None and unit_price is not None:
                total_value = quantity * unit_price

            origin = raw.get("origin_country")
            batch.items.append(CargoItem(
                id=uuid.uuid4(),
                item_no=raw.get("item_no") or index,
                product_name=raw["product_name"].strip(),
                product_name_en=raw.get("product_name_en"),
                material=raw.get("material"),
                origin_country=origin.strip().upper() if origin else None,
                unit=raw.get("unit"),
                quantity=quantity,
                unit_price=unit_price,
                total_value=quantize_money(total_value) if total_value is not None else None,
                gross_weight=_optional_decimal(raw.get("gross_weight"), f"{field_prefix}.gross_weight"),
                customs_value=_optional_decimal(raw.get("customs_value"), f"{field_prefix}.customs_value"),
                customer_hs_code=customer_code,
            ))

        batch.item_count = len(items)
        await db.flush()
        logger.info("Created batch %s with %d items", batch.id, len(items))
        return batch
