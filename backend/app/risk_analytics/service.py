"""
RiskAnalyticsService — declared-value and inspection risk from customs history.

Observation records are append-only: a record is written once and may later
receive exactly one final outcome while it is still pending.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.batches.service import get_batch
from app.config import Settings
from app.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError, RepositoryError
from app.models.cargo import MatchStatus
from app.models.risk_record import (
    DeclarationResult,
    DeclarationValueRecord,
    InspectionRecord,
    InspectionResult,
    InspectionType,
)
from app.risk_analytics.statistics import (
    NO_DATA_MESSAGE,
    DeclarationStats,
    InspectionStats,
    RiskLevel,
    aggregate_batch_risk,
    assess_declared_price,
    compute_declaration_stats,
    compute_inspection_stats,
    inspection_tier,
    item_risk_score,
    percent,
    population_risk,
    suggested_min_price,
    watchlist_tier,
)
from app.tariff_repository.codes import validate_hs_code
from app.tax_engine.calculator import quantize_money, to_decimal

logger = logging.getLogger("customs.risk_analytics")

CONFIRMED_STATUSES = (MatchStatus.AUTO_APPROVED, MatchStatus.APPROVED)


def _origin(value: str | None) -> str | None:
    return value.strip().upper() if value else None


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else value


def _inspection_costs(delay_days, penalty_amount) -> tuple[int, Decimal]:
    if delay_days is None or delay_days < 0:
        raise InvalidInputError("delay_days", "must be zero or more")
    penalty = to_decimal(penalty_amount, "penalty_amount")
    if penalty < 0:
        raise InvalidInputError("penalty_amount", "must not be negative")
    return delay_days, penalty


class RiskAnalyticsService:
    """Statistical customs risk for codes, prices and whole batches."""

    def __init__(self, settings: Settings):
        self.min_pass_rate = settings.declaration_min_pass_rate
        self.avg_price_ratio = Decimal(str(settings.declaration_avg_price_ratio))
        self.price_margin = Decimal(str(settings.declaration_suggested_price_margin))
        self.watchlist_min_shipments = settings.inspection_watchlist_min_shipments
        self.watchlist_min_rate = settings.inspection_watchlist_min_rate
        self.delay_warning_days = Decimal(str(settings.inspection_delay_warning_days))

    async def _execute(self, db: AsyncSession, query):
        try:
            return await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Risk record query failed: %s", e)
            raise RepositoryError(f"Risk record store unavailable: {e}") from e

    # ── Declared-value risk ──

    async def _load_declaration_stats(
        self,
        db: AsyncSession,
        code: str,
        origin: str | None,
        unit: str | None,
    ) -> DeclarationStats:
        query = select(
            DeclarationValueRecord.declared_unit_price, DeclarationValueRecord.result
        ).where(
            DeclarationValueRecord.hs_code == code,
            DeclarationValueRecord.declared_unit_price > 0,
        )
        if origin:
            query = query.where(DeclarationValueRecord.origin_country == origin)
        if unit:
            query = query.where(DeclarationValueRecord.unit == unit)
        rows = (await self._execute(db, query)).all()
        return compute_declaration_stats([(price, _enum_value(result)) for price, result in rows])

    async def get_declaration_stats(
        self,
        db: AsyncSession,
        hs_code: str,
        origin: str | None = None,
        unit: str | None = None,
    ) -> dict:
        """Population stats for (code, origin[, unit]) and the suggested minimum price."""
        code = validate_hs_code(hs_code)
        stats = await self._load_declaration_stats(db, code, _origin(origin), unit)
        return {
            "hs_code": code,
            "origin_country": _origin(origin),
            "found": stats.found,
            "stats": stats.as_dict() if stats.found else None,
            "suggested_min_price": suggested_min_price(stats, self.price_margin),
            "risk_level": population_risk(stats).value,
            "message": None if stats.found else NO_DATA_MESSAGE,
        }

    async def check_declaration_risk(
        self,
        db: AsyncSession,
        hs_code: str,
        unit_price,
        origin: str | None = None,
        unit: str | None = None,
    ) -> dict:
        """Classify a proposed unit price against past declarations of the same code."""
        price = to_decimal(unit_price, "unit_price")
        if price <= 0:
            raise InvalidInputError("unit_price", "must be greater than zero")

        code = validate_hs_code(hs_code)
        stats = await self._load_declaration_stats(db, code, _origin(origin), unit)
        assessment = assess_declared_price(
            price, stats, min_pass_rate=self.min_pass_rate, avg_price_ratio=self.avg_price_ratio
        )
        return {
            "hs_code": code,
            "origin_country": _origin(origin),
            "unit_price": price,
            "found": stats.found,
            "risk_level": assessment.risk_level.value,
            "warnings": assessment.warnings,
            "suggestions": assessment.suggestions,
            "suggested_min_price": suggested_min_price(stats, self.price_margin),
            "stats": stats.as_dict() if stats.found else None,
            "message": None if stats.found else NO_DATA_MESSAGE,
        }

    async def check_batch_declarations(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Annotate every classified, priced item with its declared-value risk."""
        batch = await get_batch(db, batch_id, with_items=True)
        summary = {level.value: 0 for level in RiskLevel}
        items = []
        errors = []
        for item in batch.items:
            if not item.matched_hs_code or item.unit_price is None or item.unit_price <= 0:
                continue
            try:
                check = await self.check_declaration_risk(
                    db, item.matched_hs_code, item.unit_price, item.origin_country, item.unit
                )
            except (InvalidInputError, RepositoryError) as e:
                errors.append({"item_id": str(item.id), "error": str(e)})
                continue

            item.declaration_risk = check["risk_level"]
            item.min_safe_price = check["suggested_min_price"]
            item.price_warning = "; ".join(check["warnings"]) or None
            summary[check["risk_level"]] += 1
            items.append({
                "item_id": str(item.id),
                "item_no": item.item_no,
                "product_name": item.product_name,
                "hs_code": item.matched_hs_code,
                "unit_price": item.unit_price,
                "risk_level": check["risk_level"],
                "suggested_min_price": check["suggested_min_price"],
                "warnings": check["warnings"],
            })
        await db.flush()
        return {
            "batch_id": batch.id,
            "checked": len(items),
            "summary": summary,
            "items": items,
            "errors": errors,
        }

    async def record_declaration(
        self,
        db: AsyncSession,
        *,
        hs_code: str,
        declared_unit_price,
        origin_country: str | None = None,
        product_name: str | None = None,
        unit: str | None = None,
        quantity=None,
        currency: str = "EUR",
        declaration_date: date | None = None,
        result: DeclarationResult | str = DeclarationResult.PENDING,
        customs_note: str | None = None,
        batch_id: uuid.UUID | None = None,
    ) -> DeclarationValueRecord:
        price = to_decimal(declared_unit_price, "declared_unit_price")
        if price <= 0:
            raise InvalidInputError("declared_unit_price", "must be greater than zero")
        try:
            outcome = DeclarationResult(result)
        except ValueError:
            raise InvalidInputError("result", f"'{result}' is not a declaration result")

        record = DeclarationValueRecord(
            id=uuid.uuid4(),
            hs_code=validate_hs_code(hs_code),
            origin_country=_origin(origin_country),
            product_name=product_name,
            declared_unit_price=price,
            unit=unit,
            quantity=to_decimal(quantity, "quantity") if quantity is not None else None,
            currency=currency,
            declaration_date=declaration_date or datetime.now(timezone.utc).date(),
            result=outcome,
            customs_note=customs_note,
            batch_id=batch_id,
        )
        db.add(record)
        await db.flush()
        return record

    async def resolve_declaration(
        self,
        db: AsyncSession,
        record_id: uuid.UUID,
        result: DeclarationResult | str,
        customs_note: str | None = None,
    ) -> DeclarationValueRecord:
        """Give a pending declaration its final customs outcome."""
        try:
            outcome = DeclarationResult(result)
        except ValueError:
            raise InvalidInputError("result", f"'{result}' is not a declaration result")
        if outcome == DeclarationResult.PENDING:
            raise InvalidInputError("result", "a final outcome is required")

        record = (await self._execute(
            db, select(DeclarationValueRecord).where(DeclarationValueRecord.id == record_id)
        )).scalar_one_or_none()
        if record is None:
            raise NotFoundError(f"Declaration record {record_id} not found")
        if record.result != DeclarationResult.PENDING:
            raise InvalidTransitionError(
                f"Declaration record {record_id} is already {_enum_value(record.result)}"
            )
        record.result = outcome
        record.customs_note = customs_note
        await db.flush()
        return record

    async def record_batch_declarations(self, db: AsyncSession, batch_id: uuid.UUID) -> int:
        """Append a pending declaration for every confirmed, priced item of a batch."""
        batch = await get_batch(db, batch_id, with_items=True)
        count = 0
        for item in batch.items:
            if item.match_status not in CONFIRMED_STATUSES or not item.matched_hs_code:
                continue
            if item.unit_price is None or item.unit_price <= 0:
                continue
            await self.record_declaration(
                db,
                hs_code=item.matched_hs_code,
                declared_unit_price=item.unit_price,
                origin_country=item.origin_country,
                product_name=item.product_name,
                unit=item.unit,
                quantity=item.quantity,
                batch_id=batch.id,
            )
            count += 1
        logger.info("Recorded %d declarations for batch %s", count, batch.id)
        return count

    async def resolve_batch_declarations(
        self,
        db: AsyncSession,
        batch_id: uuid.UUID,
        result: DeclarationResult | str,
        customs_note: str | None = None,
    ) -> int:
        """Give every still-pending declaration of a batch the same outcome.

        Already resolved records keep their outcome. Returns the number updated.
        """
        try:
            outcome = DeclarationResult(result)
        except ValueError:
            raise InvalidInputError("result", f"'{result}' is not a declaration result")
        if outcome == DeclarationResult.PENDING:
            raise InvalidInputError("result", "a final outcome is required")

        batch = await get_batch(db, batch_id)
        pending = (await self._execute(
            db,
            select(DeclarationValueRecord).where(
                DeclarationValueRecord.batch_id == batch.id,
                DeclarationValueRecord.result == DeclarationResult.PENDING,
            ),
        )).scalars().all()
        for record in pending:
            record.result = outcome
            record.customs_note = customs_note
        await db.flush()
        logger.info("Batch %s: %d pending declarations marked %s", batch.id, len(pending), outcome.value)
        return len(pending)

    # ── Inspection risk ──

    async def _load_inspection_stats(
        self,
        db: AsyncSession,
        code: str,
        origin: str | None,
    ) -> InspectionStats:
        query = select(
            InspectionRecord.inspection_type,
            InspectionRecord.result,
            InspectionRecord.delay_days,
            InspectionRecord.penalty_amount,
        ).where(InspectionRecord.hs_code == code)
        if origin:
            query = query.where(InspectionRecord.origin_country == origin)
        rows = (await self._execute(db, query)).all()
        return compute_inspection_stats([
            (_enum_value(kind), _enum_value(result), delay, penalty)
            for kind, result, delay, penalty in rows
        ])

    def _inspection_result(self, code: str, origin: str | None, stats: InspectionStats) -> dict:
        if not stats.found:
            return {
                "hs_code": code,
                "origin_country": origin,
                "found": False,
                "stats": None,
                "risk_level": RiskLevel.UNKNOWN.value,
                "message": NO_DATA_MESSAGE,
            }
        return {
            "hs_code": code,
            "origin_country": origin,
            "found": True,
            "stats": stats.as_dict(),
            "risk_level": inspection_tier(stats.inspection_rate, stats.physical_rate).value,
            "message": None,
        }

    async def get_inspection_stats(
        self,
        db: AsyncSession,
        hs_code: str,
        origin: str | None = None,
    ) -> dict:
        code = validate_hs_code(hs_code)
        stats = await self._load_inspection_stats(db, code, _origin(origin))
        return self._inspection_result(code, _origin(origin), stats)

    async def get_high_inspection_codes(
        self,
        db: AsyncSession,
        origin: str | None = None,
        min_rate: float | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Watchlist of code/origin pairs inspected at or above ``min_rate`` percent.

        Pairs with fewer than the configured minimum of shipments are not eligible.
        """
        min_rate = self.watchlist_min_rate if min_rate is None else min_rate
        total = func.count(InspectionRecord.id)
        inspected = func.sum(case((InspectionRecord.inspection_type != InspectionType.NONE, 1), else_=0))
        physical = func.sum(case(
            (InspectionRecord.inspection_type.in_([InspectionType.PHYSICAL, InspectionType.FULL]), 1),
            else_=0,
        ))
        query = (
            select(
                InspectionRecord.hs_code,
                InspectionRecord.origin_country,
                total.label("total"),
                inspected.label("inspected"),
                physical.label("physical"),
                func.max(InspectionRecord.product_name).label("product_name"),
            )
            .group_by(InspectionRecord.hs_code, InspectionRecord.origin_country)
            .having(total >= self.watchlist_min_shipments)
        )
        if origin:
            query = query.where(InspectionRecord.origin_country == _origin(origin))

        watchlist = []
        for row in (await self._execute(db, query)).all():
            inspection_rate = percent(int(row.inspected or 0), row.total)
            if inspection_rate < min_rate:
                continue
            watchlist.append({
                "hs_code": row.hs_code,
                "origin_country": row.origin_country,
                "product_name": row.product_name,
                "total_count": row.total,
                "inspected_count": int(row.inspected or 0),
                "physical_count": int(row.physical or 0),
                "inspection_rate": inspection_rate,
                "physical_rate": percent(int(row.physical or 0), row.total),
                "risk_level": watchlist_tier(inspection_rate).value,
            })
        watchlist.sort(key=lambda w: (-w["inspection_rate"], -w["total_count"], w["hs_code"]))
        return watchlist[:limit]

    async def analyze_batch_inspection_risk(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Score every classified item and roll the scores up to the batch."""
        batch = await get_batch(db, batch_id, with_items=True)
        item_results = []
        items = []
        warnings = []
        errors = []
        for item in batch.items:
            if not item.matched_hs_code:
                continue
            origin = _origin(item.origin_country)
            try:
                stats = await self._load_inspection_stats(db, item.matched_hs_code, origin)
            except RepositoryError as e:
                errors.append({"item_id": str(item.id), "error": str(e)})
                continue

            result = self._inspection_result(item.matched_hs_code, origin, stats)
            tier = RiskLevel(result["risk_level"]) if stats.found else None
            score = item_risk_score(tier, stats.inspection_rate)
            item_results.append((tier, score))

            item.inspection_risk = result["risk_level"]
            item.inspection_risk_score = score
            if stats.found and stats.avg_delay_days > self.delay_warning_days:
                warnings.append(
                    f"{item.matched_hs_code}: average inspection delay {stats.avg_delay_days} days"
                )
            items.append({
                "item_id": str(item.id),
                "item_no": item.item_no,
                "product_name": item.product_name,
                "hs_code": item.matched_hs_code,
                "risk_level": result["risk_level"],
                "risk_score": score,
                "inspection_rate": stats.inspection_rate if stats.found else None,
                "physical_rate": stats.physical_rate if stats.found else None,
                "message": result.get("message"),
            })

        score, level = aggregate_batch_risk(item_results)
        batch.risk_score = score
        batch.risk_level = level.value
        batch.risk_analyzed_at = datetime.now(timezone.utc)
        await db.flush()

        logger.info("Batch %s inspection risk %s (score %d)", batch.id, level.value, score)
        return {
            "batch_id": batch.id,
            "risk_score": score,
            "risk_level": level.value,
            "high_risk_count": sum(1 for tier, _ in item_results if tier == RiskLevel.HIGH),
            "medium_risk_count": sum(1 for tier, _ in item_results if tier == RiskLevel.MEDIUM),
            "items": items,
            "warnings": warnings,
            "errors": errors,
        }

    async def record_inspection(
        self,
        db: AsyncSession,
        *,
        hs_code: str,
        origin_country: str | None = None,
        product_name: str | None = None,
        inspection_type: InspectionType | str = InspectionType.NONE,
        result: InspectionResult | str = InspectionResult.PENDING,
        delay_days: int = 0,
        penalty_amount=0,
        inspection_date: date | None = None,
        notes: str | None = None,
        batch_id: uuid.UUID | None = None,
    ) -> InspectionRecord:
        try:
            kind = InspectionType(inspection_type)
        except ValueError:
            raise InvalidInputError("inspection_type", f"'{inspection_type}' is not an inspection type")
        try:
            outcome = InspectionResult(result)
        except ValueError:
            raise InvalidInputError("result", f"'{result}' is not an inspection result")
        delay_days, penalty = _inspection_costs(delay_days, penalty_amount)

        record = InspectionRecord(
            id=uuid.uuid4(),
            hs_code=validate_hs_code(hs_code),
            origin_country=_origin(origin_country),
            product_name=product_name,
            inspection_type=kind,
            result=outcome,
            delay_days=delay_days,
            penalty_amount=quantize_money(penalty),
            inspection_date=inspection_date or datetime.now(timezone.utc).date(),
            notes=notes,
            batch_id=batch_id,
        )
        db.add(record)
        await db.flush()
        return record

    async def resolve_inspection(
        self,
        db: AsyncSession,
        record_id: uuid.UUID,
        *,
        inspection_type: InspectionType | str,
        result: InspectionResult | str,
        delay_days: int = 0,
        penalty_amount=0,
        notes: str | None = None,
    ) -> InspectionRecord:
        """Give a pending inspection its final type and outcome."""
        try:
            kind = InspectionType(inspection_type)
            outcome = InspectionResult(result)
        except ValueError as e:
            raise InvalidInputError("result", str(e))
        if outcome == InspectionResult.PENDING:
            raise InvalidInputError("result", "a final outcome is required")
        delay_days, penalty = _inspection_costs(delay_days, penalty_amount)

        record = (await self._execute(
            db, select(InspectionRecord).where(InspectionRecord.id == record_id)
        )).scalar_one_or_none()
        if record is None:
            raise NotFoundError(f"Inspection record {record_id} not found")
        if record.result != InspectionResult.PENDING:
            raise InvalidTransitionError(
                f"Inspection record {record_id} is already {_enum_value(record.result)}"
            )
        record.inspection_type = kind
        record.result = outcome
        record.delay_days = delay_days
        record.penalty_amount = quantize_money(penalty)
        record.notes = notes
        await db.flush()
        return record

    async def record_batch_inspections(self, db: AsyncSession, batch_id: uuid.UUID) -> int:
        """Append a pending inspection record for every confirmed item of a batch."""
        batch = await get_batch(db, batch_id, with_items=True)
        count = 0
        for item in batch.items:
            if item.match_status not in CONFIRMED_STATUSES or not item.matched_hs_code:
                continue
            await self.record_inspection(
                db,
                hs_code=item.matched_hs_code,
                origin_country=item.origin_country,
                product_name=item.product_name,
                batch_id=batch.id,
            )
            count += 1
        return count
