"""Pure candidate filtering and ranking for lower-tax alternative codes."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.risk_analytics.statistics import RiskLevel
from app.tariff_repository.rate_policy import TariffRow
from app.tax_engine.calculator import TaxBreakdown


@dataclass
class Alternative:
    row: TariffRow
    breakdown: TaxBreakdown
    savings: Decimal
    strategy: str

    @property
    def risk_level(self) -> RiskLevel:
        return candidate_risk(self.row)

    def as_dict(self) -> dict:
        return {
            "hs_code": self.row.hs_code,
            "description": self.row.description,
            "description_en": self.row.description_en,
            "origin_country_code": self.row.origin_country_code,
            "strategy": self.strategy,
            "duty_rate": self.row.duty,
            "vat_rate": self.breakdown.vat_rate,
            "anti_dumping_rate": self.row.anti_dumping,
            "countervailing_rate": self.row.countervailing,
            "effective_tax_rate": self.breakdown.effective_tax_rate,
            "total_tax": self.breakdown.total_tax,
            "savings": self.savings,
            "risk_level": self.risk_level.value,
        }


def candidate_risk(row: TariffRow) -> RiskLevel:
    """Coarse defensibility flag: any anti-dumping exposure is medium."""
    return RiskLevel.MEDIUM if row.anti_dumping > 0 else RiskLevel.LOW


def passes_same_line_filter(row: TariffRow, current: TariffRow) -> bool:
    """Same 8-digit pool: drop rows whose nonzero anti-dumping rate is not lower than current."""
    return row.anti_dumping == 0 or row.anti_dumping < current.anti_dumping


def passes_no_anti_dumping_filter(row: TariffRow) -> bool:
    return row.anti_dumping == 0


def rank_alternatives(
    current: TaxBreakdown,
    candidates: list[tuple[TariffRow, TaxBreakdown, str]],
    limit: int,
) -> list[Alternative]:
    """Keep strictly positive savings, best first, at most ``limit``."""
    alternatives = []
    for row, breakdown, strategy in candidates:
        savings = current.effective_tax_rate - breakdown.effective_tax_rate
        if savings > 0:
            alternatives.append(Alternative(row, breakdown, savings, strategy))
    alternatives.sort(key=lambda a: (-a.savings, a.row.hs_code))
    return alternatives[:max(limit, 0)]


def assess_tax_risk(row: TariffRow) -> tuple[RiskLevel, list[str]]:
    """Tax exposure of a code: anti-dumping dominates, countervailing and high duty add to it."""
    reasons = []
    level = RiskLevel.LOW
    if row.anti_dumping >= 10:
        level = RiskLevel.HIGH
        reasons.append(f"High anti-dumping duty ({row.anti_dumping}%)")
    elif row.anti_dumping > 0:
        level = RiskLevel.MEDIUM
        reasons.append(f"Anti-dumping duty applies ({row.anti_dumping}%)")
    if row.countervailing > 0:
        if level == RiskLevel.LOW:
            level = RiskLevel.MEDIUM
        reasons.append(f"Countervailing duty applies ({row.countervailing}%)")
    if row.duty >= 15:
        if level == RiskLevel.LOW:
            level = RiskLevel.MEDIUM
        reasons.append(f"High duty rate ({row.duty}%)")
    return level, reasons


# Anti-dumping watchlist tiers, highest first
ANTI_DUMPING_TIERS = (
    (Decimal("30"), "critical"),
    (Decimal("20"), "high"),
    (Decimal("10"), "medium"),
)

# Per-item weights for the batch tax-risk score
_RISK_WEIGHTS = {RiskLevel.HIGH: 100, RiskLevel.MEDIUM: 50, RiskLevel.LOW: 10}


def anti_dumping_tier(rate: Decimal) -> str:
    for floor, tier in ANTI_DUMPING_TIERS:
        if rate >= floor:
            return tier
    return "low"


def batch_tax_risk(levels: list[RiskLevel], item_count: int) -> tuple[int, RiskLevel]:
    """Score (0-100) and overall level of a batch from its items' tax-risk levels.

    ``item_count`` includes classified items with no tariff data; they weigh zero.
    Any high item makes the batch high, any medium item makes it at least medium.
    """
    if item_count <= 0:
        return 0, RiskLevel.LOW
    weighted = sum(_RISK_WEIGHTS.get(level, 0) for level in levels)
    score = int((Decimal(weighted) / item_count).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if RiskLevel.HIGH in levels or score >= 60:
        return score, RiskLevel.HIGH
    if RiskLevel.MEDIUM in levels or score >= 30:
        return score, RiskLevel.MEDIUM
    return score, RiskLevel.LOW
