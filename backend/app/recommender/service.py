"""
AlternativeCodeRecommender — lower-tax classification codes for the same product.

Candidates come from three pools: the same 8-digit tariff line, the same 6-digit
subheading, and catalog descriptions naming the product. Each candidate's rates
are resolved for the item's origin and scored with the tax cascade at a
reference customs value.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.batches.service import get_batch
from app.config import Settings
from app.models.cargo import ClearanceType
from app.recommender.candidates import (
    anti_dumping_tier,
    assess_tax_risk,
    batch_tax_risk,
    passes_no_anti_dumping_filter,
    passes_same_line_filter,
    rank_alternatives,
)
from app.risk_analytics.statistics import RiskLevel
from app.tariff_repository.codes import hs_prefix, validate_hs_code
from app.tariff_repository.rate_policy import TariffRow
from app.tariff_repository.repository import TariffRepository
from app.tax_engine.calculator import TaxBreakdown, compute_tax

logger = logging.getLogger("customs.recommender")


class AlternativeCodeRecommender:
    def __init__(self, settings: Settings, repository: TariffRepository | None = None):
        self.repository = repository or TariffRepository(settings)
        self.default_origin = settings.default_origin
        self.default_vat_rate = Decimal(str(settings.default_vat_rate))
        self.reference_value = Decimal(str(settings.reference_customs_value))
        self.default_limit = settings.recommender_default_limit

    def _burden(self, row: TariffRow) -> TaxBreakdown:
        return compute_tax(
            customs_value=self.reference_value,
            duty_rate=row.duty,
            vat_rate=row.vat_rate if row.vat_rate is not None else self.default_vat_rate,
            anti_dumping_rate=row.anti_dumping,
            countervailing_rate=row.countervailing,
            clearance_type=ClearanceType.STANDARD,
        )

    def _current_summary(self, row: TariffRow, burden: TaxBreakdown) -> dict:
        return {
            "hs_code": row.hs_code,
            "description": row.description,
            "origin_country_code": row.origin_country_code,
            "duty_rate": row.duty,
            "vat_rate": burden.vat_rate,
            "anti_dumping_rate": row.anti_dumping,
            "countervailing_rate": row.countervailing,
            "effective_tax_rate": burden.effective_tax_rate,
            "total_tax": burden.total_tax,
        }

    async def find_alternatives(
        self,
        db: AsyncSession,
        hs_code: str,
        product_name: str | None = None,
        origin: str | None = None,
        limit: int | None = None,
    ) -> dict:
        """Ranked lower-tax codes; ``found`` is False when the current code is unknown."""
        code = validate_hs_code(hs_code)
        origin = (origin or self.default_origin).upper()
        limit = self.default_limit if limit is None else limit

        current = await self.repository.resolve(db, code, origin)
        if current is None:
            return {
                "found": False,
                "hs_code": code,
                "origin_country": origin,
                "message": f"No tariff data for code {code} and origin {origin}",
                "current": None,
                "alternatives": [],
                "total_alternatives": 0,
            }
        current_burden = self._burden(current)

        seen = {code}
        candidates: list[tuple[TariffRow, TaxBreakdown, str]] = []

        def take(rows: dict[str, TariffRow], keep, strategy: str) -> None:
            pool = [row for c, row in rows.items() if c not in seen and keep(row)]
            pool.sort(key=lambda r: (r.tariff_burden, r.hs_code))
            for row in pool[:limit]:
                seen.add(row.hs_code)
                candidates.append((row, self._burden(row), strategy))

        prefix_8 = hs_prefix(code, 8)
        same_line = await self.repository.resolve_codes(db, origin=origin, code_prefix=prefix_8)
        take(same_line, lambda row: passes_same_line_filter(row, current), "prefix_8")

        same_heading = await self.repository.resolve_codes(
            db, origin=origin, code_prefix=hs_prefix(code, 6), exclude_prefix=prefix_8
        )
        take(same_heading, passes_no_anti_dumping_filter, "prefix_6")

        if product_name and product_name.strip():
            similar = await self.repository.resolve_codes(
                db, origin=origin, description_contains=product_name.strip()
            )
            take(similar, passes_no_anti_dumping_filter, "similar_product")

        alternatives = rank_alternatives(current_burden, candidates, limit)
        logger.info(
            "Alternatives for %s/%s: %d candidates, %d with savings",
            code, origin, len(candidates), len(alternatives),
        )
        return {
            "found": True,
            "hs_code": code,
            "origin_country": origin,
            "message": None,
            "current": self._current_summary(current, current_burden),
            "alternatives": [a.as_dict() for a in alternatives],
            "total_alternatives": len(alternatives),
        }

    async def analyze_tax_risk(self, db: AsyncSession, hs_code: str, origin: str | None = None) -> dict:
        """Tax-exposure level of a code for an origin, with reasons."""
        code = validate_hs_code(hs_code)
        origin = (origin or self.default_origin).upper()
        row = await self.repository.resolve(db, code, origin)
        if row is None:
            return {
                "found": False,
                "hs_code": code,
                "origin_country": origin,
                "risk_level": "unknown",
                "reasons": [],
                "message": f"No tariff data for code {code} and origin {origin}",
            }
        level, reasons = assess_tax_risk(row)
        burden = self._burden(row)
        return {
            "found": True,
            "hs_code": code,
            "origin_country": origin,
            "risk_level": level.value,
            "reasons": reasons,
            "effective_tax_rate": burden.effective_tax_rate,
            "message": None,
        }

    async def get_anti_dumping_codes(
        self,
        db: AsyncSession,
        origin: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Codes whose resolved rate for the origin carries anti-dumping duty, highest first."""
        origin = (origin or self.default_origin).upper()
        resolved = await self.repository.resolve_codes(db, origin=origin)
        exposed = sorted(
            (row for row in resolved.values() if row.anti_dumping > 0),
            key=lambda row: (-row.anti_dumping, row.hs_code),
        )
        return [
            {
                "hs_code": row.hs_code,
                "description": row.description,
                "description_en": row.description_en,
                "origin_country_code": row.origin_country_code,
                "duty_rate": row.duty,
                "anti_dumping_rate": row.anti_dumping,
                "countervailing_rate": row.countervailing,
                "risk_level": anti_dumping_tier(row.anti_dumping),
            }
            for row in exposed[:max(limit, 0)]
        ]

    async def analyze_batch_tax_risk(self, db: AsyncSession, batch_id: uuid.UUID) -> dict:
        """Roll the tax exposure of every classified item up to a batch score.

        Items are scored high 100, medium 50, low 10; classified items without
        tariff data count toward the average with zero weight.
        """
        batch = await get_batch(db, batch_id, with_items=True)
        classified = [item for item in batch.items if item.matched_hs_code]
        levels: list[RiskLevel] = []
        risk_items = []
        for item in classified:
            origin = (item.origin_country or self.default_origin).upper()
            row = await self.repository.resolve(db, item.matched_hs_code, origin)
            if row is None:
                continue
            level, reasons = assess_tax_risk(row)
            levels.append(level)
            if level == RiskLevel.HIGH:
                risk_items.append({
                    "item_id": str(item.id),
                    "item_no": item.item_no,
                    "product_name": item.product_name,
                    "hs_code": item.matched_hs_code,
                    "anti_dumping_rate": row.anti_dumping,
                    "reasons": reasons,
                })

        score, overall = batch_tax_risk(levels, len(classified))
        logger.info("Batch %s tax risk: score %d (%s)", batch.id, score, overall.value)
        return {
            "batch_id": batch.id,
            "total_items": len(classified),
            "high_risk_count": levels.count(RiskLevel.HIGH),
            "medium_risk_count": levels.count(RiskLevel.MEDIUM),
            "low_risk_count": levels.count(RiskLevel.LOW),
            "risk_score": score,
            "risk_level": overall.value,
            "risk_items": risk_items,
        }
