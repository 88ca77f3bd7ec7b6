"""
TaxService — applies the tax cascade to stored cargo items and batches.

Only confirmed items (auto-approved or approved, with a resolved code) carry a
tax breakdown; batch totals are always the sum of those items.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.audit_generator.service import AuditService
from app.batches.service import get_batch, get_cargo_item
from app.config import Settings
from app.exceptions import InvalidInputError, RepositoryError
from app.models.cargo import (
    AllocationMethod,
    CargoItem,
    ClearanceType,
    ImportBatch,
    MatchSource,
    MatchStatus,
)
from app.tariff_repository.codes import hs_prefix, validate_hs_code
from app.tariff_repository.rate_policy import TariffRow
from app.tariff_repository.repository import TariffRepository
from app.tax_engine.calculator import (
    ZERO,
    BatchTaxTotals,
    TaxBreakdown,
    clearance_summary,
    compute_tax,
    quantize_money,
    to_decimal,
)
from app.tax_engine.customs_value import allocate_costs, calculate_customs_value

logger = logging.getLogger("customs.tax_engine")

TAXABLE_STATUSES = (MatchStatus.AUTO_APPROVED, MatchStatus.APPROVED)

RATE_FIELDS = ("duty_rate", "vat_rate", "anti_dumping_rate", "countervailing_rate")

_COST_LEGS = (
    "international_freight",
    "domestic_freight_export",
    "domestic_freight_import",
    "unloading_cost",
    "insurance_cost",
)


def _is_taxable(item: CargoItem) -> bool:
    return item.match_status in TAXABLE_STATUSES and bool(item.matched_hs_code)


def _declared_value(item: CargoItem) -> Decimal | None:
    if item.total_value is not None:
        return item.total_value
    if item.quantity is not None and item.unit_price is not None:
        return quantize_money(item.quantity * item.unit_price)
    return None


def _clear_tax(item: CargoItem) -> None:
    item.duty_amount = None
    item.vat_amount = None
    item.other_tax_amount = None
    item.total_tax = None


def _store_tax(item: CargoItem, breakdown: TaxBreakdown) -> None:
    item.customs_value = breakdown.customs_value
    item.duty_amount = breakdown.duty
    item.vat_amount = breakdown.vat
    item.other_tax_amount = breakdown.other_tax
    item.total_tax = breakdown.total_tax


class TaxService:
    """Per-item and batch tax computation over the cascade in ``calculator``."""

    def __init__(self, settings: Settings, repository: TariffRepository | None = None):
        self.repository = repository or TariffRepository(settings)
        self.default_origin = settings.default_origin
        self.default_vat_rate = Decimal(str(settings.default_vat_rate))
        self.insurance_rate = Decimal(str(settings.default_insurance_rate))

    def compute(self, **inputs) -> TaxBreakdown:
        return compute_tax(**inputs)

    async def _lookup_rates(self, db: AsyncSession, hs_code: str, origin: str | None) -> TariffRow | None:
        """Fresh rates for a code: exact row first, then the first row under its 8-digit prefix."""
        origin = (origin or self.default_origin).upper()
        row = await self.repository.resolve(db, hs_code, origin)
        if row is None:
            row = await self.repository.resolve_prefix(db, hs_prefix(hs_code, 8), origin)
        return row

    async def _ensure_rates(self, db: AsyncSession, item: CargoItem) -> None:
        if item.duty_rate is not None:
            return
        row = await self._lookup_rates(db, item.matched_hs_code, item.origin_country)
        if row is None:
            raise RepositoryError(f"No tariff rates found for code {item.matched_hs_code}")
        item.duty_rate = row.duty
        item.vat_rate = row.vat_rate if row.vat_rate is not None else self.default_vat_rate
        item.anti_dumping_rate = row.anti_dumping
        item.countervailing_rate = row.countervailing

    def _item_breakdown(self, item: CargoItem, customs_value, clearance: ClearanceType) -> TaxBreakdown:
        return compute_tax(
            customs_value=customs_value,
            duty_rate=item.duty_rate,
            vat_rate=item.vat_rate if item.vat_rate is not None else self.default_vat_rate,
            anti_dumping_rate=item.anti_dumping_rate,
            countervailing_rate=item.countervailing_rate,
            clearance_type=clearance,
        )

    def _customs_values(self, batch: ImportBatch, items: list[CargoItem]) -> dict[uuid.UUID, Decimal | None]:
        """Customs value per item: from trade terms when the batch has an incoterm,
        otherwise the item's own customs value or its declared value."""
        if not batch.incoterm:
            return {
                item.id: item.customs_value if item.customs_value is not None else _declared_value(item)
                for item in items
            }

        priced = [item for item in items if _declared_value(item) is not None]
        shares = allocate_costs(
            [{"value": _declared_value(i), "weight": i.gross_weight} for i in priced],
            {leg: getattr(batch, leg) for leg in _COST_LEGS},
            batch.allocation_method or AllocationMethod.BY_VALUE,
        )
        values: dict[uuid.UUID, Decimal | None] = {item.id: None for item in items}
        for item, share in zip(priced, shares):
            values[item.id] = calculate_customs_value(
                batch.incoterm,
                _declared_value(item),
                duty_rate=item.duty_rate,
                vat_rate=item.vat_rate if item.vat_rate is not None else self.default_vat_rate,
                insurance_rate=self.insurance_rate,
                **share,
            )
        return values

    async def compute_batch(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Recompute every confirmed item and the batch totals.

        Idempotent: the same items and catalog give the same numbers. One item's
        failure is reported in ``errors`` and does not stop the rest.
        """
        batch = await get_batch(db, batch_id, with_items=True)
        clearance = batch.clearance_type or ClearanceType.STANDARD
        totals = BatchTaxTotals(clearance_type=clearance)

        taxable = []
        for item in batch.items:
            if not _is_taxable(item):
                _clear_tax(item)
                continue
            try:
                await self._ensure_rates(db, item)
            except RepositoryError as e:
                _clear_tax(item)
                totals.errors.append({"item_id": str(item.id), "error": str(e)})
                continue
            taxable.append(item)

        # Invalid trade terms affect every item, so they fail the whole call
        customs_values = self._customs_values(batch, taxable)

        for item in taxable:
            customs_value = customs_values.get(item.id)
            try:
                if customs_value is None:
                    raise InvalidInputError("customs_value", "item has no value to assess")
                breakdown = self._item_breakdown(item, customs_value, clearance)
            except InvalidInputError as e:
                logger.warning("Tax computation failed for item %s: %s", item.id, e)
                _clear_tax(item)
                totals.errors.append({"item_id": str(item.id), "error": str(e)})
                continue
            _store_tax(item, breakdown)
            totals.add(
                breakdown,
                declared_value=_declared_value(item),
                item_id=str(item.id),
                item_no=item.item_no,
                product_name=item.product_name,
                hs_code=item.matched_hs_code,
            )

        self._apply_totals(batch, totals)
        batch.tax_calculated_at = datetime.now(timezone.utc)
        await db.flush()

        await AuditService.log_event(
            db,
            event_type="BATCH_TAX_COMPUTED",
            entity_type="import_batch",
            entity_id=batch.id,
            batch_id=batch.id,
            action="compute_tax",
            new_state={
                "item_count": totals.item_count,
                "total_tax": totals.total_tax,
                "clearance_type": clearance,
                "errors": len(totals.errors),
            },
        )
        logger.info(
            "Batch %s tax: %d items, total %s, %d errors",
            batch.id, totals.item_count, totals.total_tax, len(totals.errors),
        )
        return {"batch_id": batch.id, **totals.as_dict()}

    def _apply_totals(self, batch: ImportBatch, totals: BatchTaxTotals) -> None:
        batch.total_value = quantize_money(totals.total_value)
        batch.total_customs_value = totals.total_customs_value
        batch.total_duty = totals.total_duty
        batch.total_vat = totals.total_vat
        batch.total_other_tax = totals.total_other_tax
        batch.total_tax = totals.total_tax

    async def refresh_batch_totals(self, db: AsyncSession, batch_id: uuid.UUID) -> BatchTaxTotals:
        """Re-derive batch totals by summing the stored breakdowns of its items."""
        batch = await get_batch(db, batch_id, with_items=True)
        totals = self._totals_from_items(batch)
        self._apply_totals(batch, totals)
        await db.flush()
        return totals

    def _totals_from_items(self, batch: ImportBatch) -> BatchTaxTotals:
        totals = BatchTaxTotals(clearance_type=batch.clearance_type or ClearanceType.STANDARD)
        for item in batch.items:
            if item.total_tax is None:
                continue
            totals.item_count += 1
            declared = _declared_value(item)
            totals.total_value += declared if declared is not None else (item.customs_value or ZERO)
            totals.total_customs_value += item.customs_value or ZERO
            totals.total_duty += item.duty_amount or ZERO
            totals.total_vat += item.vat_amount or ZERO
            totals.total_other_tax += item.other_tax_amount or ZERO
            totals.total_tax += item.total_tax
        return totals

    async def update_item_tax(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        *,
        hs_code: str | None = None,
        customs_value=None,
        rate_overrides: dict | None = None,
        updated_by: str = "user",
    ) -> dict:
        """Edit an item's code, customs value or individual rates and recompute.

        A new code triggers a fresh rate lookup; each rate present in
        ``rate_overrides`` wins over the looked-up value for that field only, and
        fields neither overridden nor found keep their current value.
        """
        overrides = {}
        for name, value in (rate_overrides or {}).items():
            if name not in RATE_FIELDS:
                raise InvalidInputError(name, "not an editable rate field")
            if value is not None:
                overrides[name] = to_decimal(value, name)
                if overrides[name] < 0:
                    raise InvalidInputError(name, "must not be negative")
        new_value = None
        if customs_value is not None:
            new_value = to_decimal(customs_value, "customs_value")
            if new_value < 0:
                raise InvalidInputError("customs_value", "must not be negative")

        item = await get_cargo_item(db, item_id)
        previous = {
            "hs_code": item.matched_hs_code,
            "customs_value": item.customs_value,
            **{name: getattr(item, name) for name in RATE_FIELDS},
        }

        fresh: TariffRow | None = None
        if hs_code is not None:
            code = validate_hs_code(hs_code, "hs_code")
            if code != item.matched_hs_code:
                fresh = await self._lookup_rates(db, code, item.origin_country)
                item.matched_hs_code = code
                item.match_source = MatchSource.MANUAL
                item.match_confidence = 100

        fresh_rates = {}
        if fresh is not None:
            fresh_rates = {
                "duty_rate": fresh.duty,
                "vat_rate": fresh.vat_rate if fresh.vat_rate is not None else self.default_vat_rate,
                "anti_dumping_rate": fresh.anti_dumping,
                "countervailing_rate": fresh.countervailing,
            }
        for name in RATE_FIELDS:
            if name in overrides:
                setattr(item, name, overrides[name])
            elif name in fresh_rates:
                setattr(item, name, fresh_rates[name])

        if new_value is not None:
            item.customs_value = new_value
        value = item.customs_value if item.customs_value is not None else _declared_value(item)
        if value is None:
            raise InvalidInputError("customs_value", "item has no value to assess")

        batch = await get_batch(db, item.batch_id)
        breakdown = self._item_breakdown(item, value, batch.clearance_type or ClearanceType.STANDARD)
        included = _is_taxable(item)
        if included:
            _store_tax(item, breakdown)
        else:
            _clear_tax(item)
        await db.flush()
        await self.refresh_batch_totals(db, item.batch_id)

        await AuditService.log_event(
            db,
            event_type="TAX_ITEM_UPDATED",
            entity_type="cargo_item",
            entity_id=item.id,
            batch_id=item.batch_id,
            action="update_tax",
            actor=updated_by,
            actor_type="user",
            previous_state=previous,
            new_state={
                "hs_code": item.matched_hs_code,
                "customs_value": item.customs_value,
                **{name: getattr(item, name) for name in RATE_FIELDS},
                "total_tax": breakdown.total_tax,
            },
            event_data={"overrides": sorted(overrides), "rates_refreshed": fresh is not None},
        )
        return {
            "item_id": item.id,
            "hs_code": item.matched_hs_code,
            "included_in_batch": included,
            "rates_refreshed": fresh is not None,
            **breakdown.as_dict(),
        }

    async def update_item_origin(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        origin_country: str,
        *,
        refresh_rates: bool = True,
        updated_by: str = "user",
    ) -> dict:
        """Change an item's origin and re-resolve its rates for the new origin.

        Rates stay as they are when refreshing is off or the catalog has no row for
        the code and new origin. An item that already carries a tax breakdown is
        recomputed so batch totals keep matching their items.
        """
        origin = (origin_country or "").strip().upper()
        if not origin:
            raise InvalidInputError("origin_country", "must not be empty")

        item = await get_cargo_item(db, item_id)
        previous = {
            "origin_country": item.origin_country,
            **{name: getattr(item, name) for name in RATE_FIELDS},
        }
        item.origin_country = origin

        fresh: TariffRow | None = None
        if refresh_rates and item.matched_hs_code:
            fresh = await self._lookup_rates(db, item.matched_hs_code, origin)
        if fresh is not None:
            item.duty_rate = fresh.duty
            item.vat_rate = fresh.vat_rate if fresh.vat_rate is not None else self.default_vat_rate
            item.anti_dumping_rate = fresh.anti_dumping
            item.countervailing_rate = fresh.countervailing

        recomputed = False
        if fresh is not None and item.total_tax is not None and _is_taxable(item):
            value = item.customs_value if item.customs_value is not None else _declared_value(item)
            if value is not None:
                batch = await get_batch(db, item.batch_id)
                _store_tax(item, self._item_breakdown(
                    item, value, batch.clearance_type or ClearanceType.STANDARD
                ))
                recomputed = True
        await db.flush()
        if recomputed:
            await self.refresh_batch_totals(db, item.batch_id)

        await AuditService.log_event(
            db,
            event_type="ITEM_ORIGIN_UPDATED",
            entity_type="cargo_item",
            entity_id=item.id,
            batch_id=item.batch_id,
            action="update_origin",
            actor=updated_by,
            actor_type="user",
            previous_state=previous,
            new_state={
                "origin_country": item.origin_country,
                **{name: getattr(item, name) for name in RATE_FIELDS},
            },
            event_data={"rates_refreshed": fresh is not None},
        )
        logger.info("Item %s origin set to %s (rates refreshed: %s)", item.id, origin, fresh is not None)
        return {
            "item_id": item.id,
            "hs_code": item.matched_hs_code,
            "origin_country": item.origin_country,
            "rates_refreshed": fresh is not None,
            "tax_recomputed": recomputed,
            **{name: getattr(item, name) for name in RATE_FIELDS},
            "total_tax": item.total_tax,
        }

    async def set_clearance_type(
        self, db: AsyncSession, batch_id: uuid.UUID, clearance_type: ClearanceType | str
    ) -> dict:
        try:
            clearance = ClearanceType(clearance_type)
        except ValueError:
            raise InvalidInputError("clearance_type", f"'{clearance_type}' is not standard or deferred")
        batch = await get_batch(db, batch_id)
        batch.clearance_type = clearance
        await db.flush()
        return clearance_summary(clearance, batch.total_duty, batch.total_vat, batch.total_other_tax)

    async def set_trade_terms(self, db: AsyncSession, batch_id: uuid.UUID, **terms) -> ImportBatch:
        """Store the batch's incoterm, cost legs and allocation method."""
        batch = await get_batch(db, batch_id)
        if "incoterm" in terms:
            incoterm = terms.pop("incoterm")
            if incoterm:
                # Validates the rule name
                calculate_customs_value(incoterm, 0)
            batch.incoterm = incoterm.upper() if incoterm else None
        if "allocation_method" in terms:
            method = terms.pop("allocation_method")
            try:
                batch.allocation_method = AllocationMethod(method)
            except ValueError:
                raise InvalidInputError("allocation_method", f"'{method}' is not by_value or by_weight")
        for leg, amount in terms.items():
            if leg not in _COST_LEGS:
                raise InvalidInputError(leg, "not a trade-term cost")
            if amount is None:
                continue
            value = to_decimal(amount, leg)
            if value < 0:
                raise InvalidInputError(leg, "must not be negative")
            setattr(batch, leg, value)
        await db.flush()
        return batch

    async def get_tax_details(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Totals, clearance split and per-code grouping, derived from the items."""
        batch = await get_batch(db, batch_id, with_items=True)
        totals = self._totals_from_items(batch)

        by_code: dict[str, dict] = {}
        items = []
        for item in batch.items:
            if item.total_tax is None:
                continue
            group = by_code.setdefault(item.matched_hs_code, {
                "hs_code": item.matched_hs_code,
                "item_count": 0,
                "customs_value": ZERO,
                "duty": ZERO,
                "vat": ZERO,
                "other_tax": ZERO,
                "total_tax": ZERO,
            })
            group["item_count"] += 1
            group["customs_value"] += item.customs_value or ZERO
            group["duty"] += item.duty_amount or ZERO
            group["vat"] += item.vat_amount or ZERO
            group["other_tax"] += item.other_tax_amount or ZERO
            group["total_tax"] += item.total_tax
            items.append({
                "item_id": str(item.id),
                "item_no": item.item_no,
                "product_name": item.product_name,
                "hs_code": item.matched_hs_code,
                "customs_value": item.customs_value,
                "duty_rate": item.duty_rate,
                "vat_rate": item.vat_rate,
                "anti_dumping_rate": item.anti_dumping_rate,
                "countervailing_rate": item.countervailing_rate,
                "duty": item.duty_amount,
                "vat": item.vat_amount,
                "other_tax": item.other_tax_amount,
                "total_tax": item.total_tax,
            })

        return {
            "batch_id": batch.id,
            "item_count": totals.item_count,
            "total_value": quantize_money(totals.total_value),
            "total_customs_value": totals.total_customs_value,
            "total_duty": totals.total_duty,
            "total_vat": totals.total_vat,
            "total_other_tax": totals.total_other_tax,
            "total_tax": totals.total_tax,
            "summary": totals.summary(),
            "by_hs_code": sorted(by_code.values(), key=lambda g: g["hs_code"]),
            "items": items,
            "tax_calculated_at": batch.tax_calculated_at,
        }
