"""ReviewService — human review of classified cargo items.

Manages the match-status lifecycle after matching:
{auto_approved, review, no_match} → {approved, rejected}.
Every approval confirms the (product name, material) → code pair in the
history store, the same path auto-approval takes.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit_generator.service import AuditService
from app.batches.service import get_cargo_item
from app.config import Settings
from app.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError, RepositoryError
from app.hitl_workflow.triggers import check_transition
from app.matching_engine.matchers import RateSnapshot
from app.models.cargo import CargoItem, MatchSource, MatchStatus
from app.tariff_repository.codes import validate_hs_code
from app.tariff_repository.history import HistoryStore
from app.tariff_repository.repository import TariffRepository

logger = logging.getLogger("customs.hitl_workflow")


class ReviewService:
    """Review state machine for cargo item classifications."""

    def __init__(
        self,
        settings: Settings,
        repository: TariffRepository | None = None,
        history: HistoryStore | None = None,
    ):
        self.repository = repository or TariffRepository(settings)
        self.history = history or HistoryStore()
        self.default_origin = settings.default_origin
        self.default_vat_rate = Decimal(str(settings.default_vat_rate))

    async def review_item(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        action: str,
        *,
        hs_code: str | None = None,
        reviewed_by: str = "user",
        note: str | None = None,
    ) -> CargoItem:
        """Process a review action (approve/reject).

        Approving with ``hs_code`` replaces the classification; its rates are looked
        up again for the item's origin. Repeating the action the item is already in
        changes nothing.
        """
        item = await get_cargo_item(db, item_id)
        apply, reason = check_transition(item.match_status, action)
        if not apply:
            logger.info("Item %s: %s, nothing to do", item.id, reason)
            return item

        previous = {
            "status": item.match_status,
            "hs_code": item.matched_hs_code,
            "confidence": item.match_confidence,
        }

        if action == "approve":
            await self._approve(db, item, hs_code)
        else:
            item.match_status = MatchStatus.REJECTED

        item.reviewed_by = reviewed_by
        item.reviewed_at = datetime.now(timezone.utc)
        item.review_note = note
        await db.flush()

        await AuditService.log_event(
            db,
            event_type="CARGO_ITEM_REVIEWED",
            entity_type="cargo_item",
            entity_id=item.id,
            batch_id=item.batch_id,
            action=action,
            actor=reviewed_by,
            actor_type="user",
            previous_state=previous,
            new_state={
                "status": item.match_status,
                "hs_code": item.matched_hs_code,
                "confidence": item.match_confidence,
            },
            note=note,
        )
        return item

    async def _approve(self, db: AsyncSession, item: CargoItem, hs_code: str | None) -> None:
        # auto-approval already counted this code in history
        already_confirmed = item.match_status == MatchStatus.AUTO_APPROVED
        confirmed_code = item.matched_hs_code
        if hs_code:
            code = validate_hs_code(hs_code, "hs_code")
            origin = (item.origin_country or self.default_origin).upper()
            row = await self.repository.resolve(db, code, origin)
            snapshot = RateSnapshot.from_row(row, self.default_vat_rate)
            if snapshot is not None:
                item.duty_rate = snapshot.duty_rate
                item.vat_rate = snapshot.vat_rate
                item.anti_dumping_rate = snapshot.anti_dumping_rate
                item.countervailing_rate = snapshot.countervailing_rate
            elif code != item.matched_hs_code:
                # Stale rates belong to the old code
                item.duty_rate = None
                item.vat_rate = None
                item.anti_dumping_rate = None
                item.countervailing_rate = None
            item.matched_hs_code = code
            item.match_confidence = 100
            item.match_source = MatchSource.MANUAL
        elif not item.matched_hs_code:
            raise InvalidTransitionError("Cannot approve an item without a classification code")

        if not (already_confirmed and item.matched_hs_code == confirmed_code):
            await self.history.increment(db, item.product_name, item.material, item.matched_hs_code)
        item.match_status = MatchStatus.APPROVED

    async def bulk_review(
        self,
        db: AsyncSession,
        item_ids: list[uuid.UUID],
        action: str,
        *,
        reviewed_by: str = "user",
        note: str | None = None,
    ) -> dict:
        """Apply one action to many items; each item succeeds or fails on its own."""
        if action not in ("approve", "reject"):
            raise InvalidInputError("action", f"'{action}' must be approve or reject")

        succeeded: list[str] = []
        errors: list[dict] = []
        for item_id in item_ids:
            try:
                await self.review_item(db, item_id, action, reviewed_by=reviewed_by, note=note)
            except (NotFoundError, InvalidTransitionError, InvalidInputError, RepositoryError) as e:
                errors.append({"item_id": str(item_id), "error": str(e)})
                continue
            succeeded.append(str(item_id))

        logger.info("Bulk %s by %s: %d ok, %d failed", action, reviewed_by, len(succeeded), len(errors))
        return {
            "action": action,
            "requested": len(item_ids),
            "succeeded": succeeded,
            "errors": errors,
        }

    async def get_stats(self, db: AsyncSession, batch_id: uuid.UUID | None = None) -> dict:
        """Count items per match status, optionally within one batch."""
        query = select(CargoItem.match_status, func.count(CargoItem.id)).group_by(CargoItem.match_status)
        if batch_id is not None:
            query = query.where(CargoItem.batch_id == batch_id)
        rows = (await db.execute(query)).all()

        counts = {status.value: 0 for status in MatchStatus}
        for status, count in rows:
            key = status.value if isinstance(status, MatchStatus) else status
            counts[key] = count
        return {"total": sum(counts.values()), **counts}
