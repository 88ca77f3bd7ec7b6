"""
Classification matching service.

Resolves cargo line items to a tariff classification through ordered tiers:
exact code, 8-digit prefix, 6-digit prefix, confirmed history, description text.
The first tier that yields a row wins; a tier whose store fails falls through.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit_generator.service import AuditService
from app.batches.service import get_cargo_item
from app.config import Settings
from app.exceptions import InvalidInputError, RepositoryError
from app.hitl_workflow.triggers import classify_match
from app.matching_engine.matchers import (
    MatchOutcome,
    RateSnapshot,
    history_confidence,
    tier_outcome,
)
from app.models.cargo import CargoItem, MatchSource, MatchStatus
from app.tariff_repository.codes import hs_prefix, validate_hs_code
from app.tariff_repository.history import HistoryStore
from app.tariff_repository.repository import TariffRepository
from app.translation.cache import NameTranslationCache

logger = logging.getLogger("customs.matching_engine")


class ClassificationMatcher:
    """Multi-tier classification of cargo line items."""

    def __init__(
        self,
        settings: Settings,
        repository: TariffRepository | None = None,
        history: HistoryStore | None = None,
        translations: NameTranslationCache | None = None,
    ):
        self.repository = repository or TariffRepository(settings)
        self.history = history or HistoryStore()
        self.translations = translations
        self.default_origin = settings.default_origin
        self.default_vat_rate = Decimal(str(settings.default_vat_rate))
        self.auto_approve_threshold = settings.auto_approve_confidence
        self.history_base = settings.history_base_confidence
        self.history_step = settings.history_confidence_step
        self.history_cap = settings.history_confidence_cap

    async def match(
        self,
        db: AsyncSession,
        *,
        product_name: str,
        customer_hs_code: str | None = None,
        material: str | None = None,
        origin: str | None = None,
    ) -> MatchOutcome:
        """Classify one item without persisting anything."""
        origin = (origin or self.default_origin).upper()
        product_name = (product_name or "").strip()
        notes: list[str] = []

        if customer_hs_code:
            code = validate_hs_code(customer_hs_code, "customer_hs_code")
            tiers = [
                (MatchSource.EXACT, self.repository.resolve, code),
                (MatchSource.PREFIX_8, self.repository.resolve_prefix, hs_prefix(code, 8)),
                (MatchSource.PREFIX_6, self.repository.resolve_prefix, hs_prefix(code, 6)),
            ]
            for source, resolver, key in tiers:
                try:
                    row = await resolver(db, key, origin)
                except RepositoryError as e:
                    logger.warning("%s tier failed for %s: %s", source.value, key, e)
                    notes.append(f"{source.value} lookup failed")
                    continue
                if row is not None:
                    return tier_outcome(source, row, self.default_vat_rate, notes)

        if product_name:
            outcome = await self._match_history(db, product_name, material, origin, notes)
            if outcome is not None:
                return outcome

            try:
                rows = await self.repository.lookup(
                    db,
                    description_contains=product_name,
                    origin=origin,
                    order="shortest_description",
                    limit=1,
                )
            except RepositoryError as e:
                logger.warning("fuzzy tier failed for %r: %s", product_name, e)
                notes.append("fuzzy lookup failed")
                rows = []
            if rows:
                return tier_outcome(MatchSource.FUZZY, rows[0], self.default_vat_rate, notes)

        return MatchOutcome.no_match(notes)

    async def _match_history(
        self,
        db: AsyncSession,
        product_name: str,
        material: str | None,
        origin: str,
        notes: list[str],
    ) -> MatchOutcome | None:
        try:
            hit = await self.history.lookup(db, product_name, material)
            if hit is None:
                return None
            row = await self.repository.resolve(db, hit.hs_code, origin)
        except RepositoryError as e:
            logger.warning("history tier failed for %r: %s", product_name, e)
            notes.append("history lookup failed")
            return None

        return MatchOutcome(
            hs_code=hit.hs_code,
            confidence=history_confidence(
                hit.usage_count,
                base=self.history_base,
                step=self.history_step,
                cap=self.history_cap,
            ),
            source=MatchSource.HISTORY,
            rate_snapshot=RateSnapshot.from_row(row, self.default_vat_rate),
            description=row.description if row else None,
            notes=[*notes, f"Confirmed {hit.usage_count} time(s) before"],
        )

    async def match_item(self, db: AsyncSession, item: CargoItem) -> MatchOutcome:
        """Classify a stored item and move it out of ``pending``.

        Auto-approved items are confirmed into the history store exactly like a
        manual approval.
        """
        outcome = await self.match(
            db,
            product_name=item.product_name,
            customer_hs_code=item.customer_hs_code,
            material=item.material,
            origin=item.origin_country,
        )
        status, reason = classify_match(
            outcome.confidence, auto_approve_threshold=self.auto_approve_threshold
        )

        if status == MatchStatus.AUTO_APPROVED and outcome.hs_code:
            await self.history.increment(db, item.product_name, item.material, outcome.hs_code)

        item.matched_hs_code = outcome.hs_code
        item.match_confidence = outcome.confidence
        item.match_source = outcome.source
        item.match_status = status
        if outcome.rate_snapshot is not None:
            item.duty_rate = outcome.rate_snapshot.duty_rate
            item.vat_rate = outcome.rate_snapshot.vat_rate
            item.anti_dumping_rate = outcome.rate_snapshot.anti_dumping_rate
            item.countervailing_rate = outcome.rate_snapshot.countervailing_rate

        if not item.product_name_en and self.translations is not None:
            try:
                item.product_name_en = await self.translations.get(db, item.product_name)
            except RepositoryError as e:
                logger.warning("Translation lookup failed: %s", e)

        logger.debug("Item %s matched %s (%s, %s)", item.id, outcome.hs_code, outcome.confidence, reason)
        return outcome

    async def match_batch(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Match every pending item of a batch; per-item failures are collected."""
        result = await db.execute(
            select(CargoItem)
            .where(CargoItem.batch_id == batch_id, CargoItem.match_status == MatchStatus.PENDING)
            .order_by(CargoItem.item_no)
        )
        items = list(result.scalars().all())

        counts = {s.value: 0 for s in (MatchStatus.AUTO_APPROVED, MatchStatus.REVIEW, MatchStatus.NO_MATCH)}
        errors: list[dict] = []
        for item in items:
            try:
                await self.match_item(db, item)
            except (InvalidInputError, RepositoryError) as e:
                logger.warning("Matching failed for item %s: %s", item.id, e)
                errors.append({"item_id": str(item.id), "error": str(e)})
                continue
            counts[item.match_status.value] += 1
        await db.flush()

        logger.info(
            "Batch %s matched: %d items, %s, %d errors", batch_id, len(items), counts, len(errors)
        )
        return {
            "batch_id": batch_id,
            "processed": len(items) - len(errors),
            **counts,
            "errors": errors,
        }

    async def rematch_item(self, db: AsyncSession, item_id: uuid.UUID) -> CargoItem:
        """Reset a not-yet-reviewed item to pending and classify it again."""
        item = await get_cargo_item(db, item_id)
        if item.match_status in (MatchStatus.APPROVED, MatchStatus.REJECTED):
            raise InvalidInputError("item_id", f"item already {item.match_status.value}")
        if item.match_status == MatchStatus.AUTO_APPROVED:
            raise InvalidInputError("item_id", "auto-approved items are confirmed; review them instead")

        previous = {"status": item.match_status, "hs_code": item.matched_hs_code}
        item.match_status = MatchStatus.PENDING
        await self.match_item(db, item)
        await db.flush()

        await AuditService.log_event(
            db,
            event_type="CARGO_ITEM_REMATCHED",
            entity_type="cargo_item",
            entity_id=item.id,
            batch_id=item.batch_id,
            action="rematch",
            previous_state=previous,
            new_state={
                "status": item.match_status,
                "hs_code": item.matched_hs_code,
                "confidence": item.match_confidence,
            },
        )
        return item

    async def get_stats(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Per-status counts plus items missing origin or material."""
        rows = (await db.execute(
            select(CargoItem.match_status, func.count(CargoItem.id))
            .where(CargoItem.batch_id == batch_id)
            .group_by(CargoItem.match_status)
        )).all()
        by_status = {s.value: 0 for s in MatchStatus}
        for status, count in rows:
            key = status.value if isinstance(status, MatchStatus) else status
            by_status[key] = count

        missing_origin = (await db.execute(
            select(func.count(CargoItem.id)).where(
                CargoItem.batch_id == batch_id,
                (CargoItem.origin_country.is_(None)) | (CargoItem.origin_country == ""),
            )
        )).scalar_one()
        missing_material = (await db.execute(
            select(func.count(CargoItem.id)).where(
                CargoItem.batch_id == batch_id,
                (CargoItem.material.is_(None)) | (CargoItem.material == ""),
            )
        )).scalar_one()

        total = sum(by_status.values())
        matched = by_status["auto_approved"] + by_status["approved"]
        return {
            "batch_id": batch_id,
            "total": total,
            "matched": matched,
            "unmatched": total - matched,
            "missing_origin": missing_origin,
            "missing_material": missing_material,
            **by_status,
        }

    async def get_review_queue(self, db: AsyncSession, batch_id: uuid.UUID) -> list[CargoItem]:
        """Items still awaiting a human decision, most confident first."""
        result = await db.execute(
            select(CargoItem)
            .where(
                CargoItem.batch_id == batch_id,
                CargoItem.match_status.in_(
                    [MatchStatus.REVIEW, MatchStatus.NO_MATCH, MatchStatus.PENDING]
                ),
            )
            .order_by(CargoItem.match_confidence.desc(), CargoItem.item_no.asc())
        )
        return list(result.scalars().all())

