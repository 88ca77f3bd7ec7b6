"""Pure risk statistics over historical customs outcomes — no DB dependency.

Declared-value risk works on passed-price percentiles; inspection risk works on
inspection and physical-inspection rates.
"""

import enum
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from app.tax_engine.calculator import quantize_money


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


_TIER_ORDER = {RiskLevel.UNKNOWN: -1, RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}

NO_DATA_MESSAGE = "No historical data for this code and origin; risk cannot be assessed"


def max_level(a: RiskLevel, b: RiskLevel) -> RiskLevel:
    return a if _TIER_ORDER[a] >= _TIER_ORDER[b] else b


def percentile_cont(sorted_values: list[Decimal], fraction: float) -> Decimal | None:
    """Linear-interpolated percentile over ascending values (SQL PERCENTILE_CONT)."""
    if not sorted_values:
        return None
    position = Decimal(str(fraction)) * (len(sorted_values) - 1)
    lower = int(position)
    upper = min(lower + 1, len(sorted_values) - 1)
    weight = position - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * weight


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, rounded half-up; 0 for an empty population."""
    if whole <= 0:
        return 0
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ── Declared-value risk ──


@dataclass
class DeclarationStats:
    total_count: int = 0
    pass_count: int = 0
    questioned_count: int = 0
    rejected_count: int = 0
    pass_rate: int = 0
    min_pass_price: Decimal | None = None
    max_pass_price: Decimal | None = None
    avg_pass_price: Decimal | None = None
    p10_pass_price: Decimal | None = None
    p25_pass_price: Decimal | None = None

    @property
    def found(self) -> bool:
        return self.total_count > 0

    def as_dict(self) -> dict:
        data = asdict(self)
        for key in ("min_pass_price", "max_pass_price", "avg_pass_price", "p10_pass_price", "p25_pass_price"):
            if data[key] is not None:
                data[key] = quantize_money(data[key])
        return data


def compute_declaration_stats(records: list[tuple[Decimal, str]]) -> DeclarationStats:
    """Stats over (declared unit price, result) pairs; non-positive prices are ignored.

    Prices are kept unrounded here; ``as_dict`` rounds them for display.
    """
    priced = [(Decimal(price), result) for price, result in records if price is not None and Decimal(price) > 0]
    passed = sorted(price for price, result in priced if result == "passed")
    stats = DeclarationStats(
        total_count=len(priced),
        pass_count=len(passed),
        questioned_count=sum(1 for _, result in priced if result == "questioned"),
        rejected_count=sum(1 for _, result in priced if result == "rejected"),
    )
    stats.pass_rate = percent(stats.pass_count, stats.total_count)
    if passed:
        stats.min_pass_price = passed[0]
        stats.max_pass_price = passed[-1]
        stats.avg_pass_price = sum(passed, Decimal("0")) / len(passed)
        stats.p10_pass_price = percentile_cont(passed, 0.10)
        stats.p25_pass_price = percentile_cont(passed, 0.25)
    return stats


def population_risk(stats: DeclarationStats) -> RiskLevel:
    """Risk of the code/origin pair itself, from its historical pass rate."""
    if not stats.found:
        return RiskLevel.UNKNOWN
    if stats.pass_rate >= 90:
        return RiskLevel.LOW
    if stats.pass_rate >= 70:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def suggested_min_price(stats: DeclarationStats, margin: Decimal = Decimal("0.95")) -> Decimal | None:
    """``max(min passed, P10 × margin)``; P10 falls back to the minimum."""
    if stats.min_pass_price is None:
        return None
    p10 = stats.p10_pass_price if stats.p10_pass_price is not None else stats.min_pass_price
    return quantize_money(max(stats.min_pass_price, p10 * margin))


@dataclass
class PriceAssessment:
    risk_level: RiskLevel
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


def assess_declared_price(
    price: Decimal,
    stats: DeclarationStats,
    *,
    min_pass_rate: float = 70.0,
    avg_price_ratio: Decimal = Decimal("0.7"),
) -> PriceAssessment:
    """Classify a proposed unit price against a fixed population.

    Monotonic in price: lowering the price can only keep or raise the tier.
    """
    if not stats.found:
        return PriceAssessment(RiskLevel.UNKNOWN, warnings=[NO_DATA_MESSAGE])

    price = Decimal(price)
    level = RiskLevel.LOW
    assessment = PriceAssessment(level)

    if stats.min_pass_price is not None and stats.min_pass_price > 0 and price < stats.min_pass_price:
        level = RiskLevel.HIGH
        assessment.warnings.append(
            f"Price {quantize_money(price)} is below the lowest accepted price "
            f"{quantize_money(stats.min_pass_price)}"
        )
        assessment.suggestions.append(
            f"Raise the declared price to at least {quantize_money(stats.min_pass_price)}"
        )
    elif stats.p10_pass_price is not None and price < stats.p10_pass_price:
        level = RiskLevel.MEDIUM
        assessment.warnings.append(
            f"Price is in the lowest 10% of accepted declarations (P10 {quantize_money(stats.p10_pass_price)})"
        )
        assessment.suggestions.append("Prepare invoices and contracts supporting the declared price")
    elif stats.avg_pass_price is not None and price < stats.avg_pass_price * avg_price_ratio:
        level = RiskLevel.MEDIUM
        assessment.warnings.append(
            f"Price is below {int(avg_price_ratio * 100)}% of the average accepted price "
            f"{quantize_money(stats.avg_pass_price)}"
        )

    if stats.pass_rate < min_pass_rate:
        level = max_level(level, RiskLevel.MEDIUM)
        assessment.warnings.append(f"Historical pass rate is only {stats.pass_rate}%")

    assessment.risk_level = level
    return assessment


# ── Inspection risk ──


PHYSICAL_TYPES = ("physical", "full")


@dataclass
class InspectionStats:
    total_count: int = 0
    inspected_count: int = 0
    physical_count: int = 0
    document_count: int = 0
    scan_count: int = 0
    passed_count: int = 0
    failed_count: int = 0
    inspection_rate: int = 0
    physical_rate: int = 0
    pass_rate: int = 0
    total_penalty: Decimal = Decimal("0")
    avg_delay_days: Decimal = Decimal("0")
    max_delay_days: int = 0

    @property
    def found(self) -> bool:
        return self.total_count > 0

    def as_dict(self) -> dict:
        data = asdict(self)
        data["total_penalty"] = quantize_money(self.total_penalty)
        return data


def compute_inspection_stats(records: list[tuple[str, str, int, Decimal]]) -> InspectionStats:
    """Stats over (inspection type, result, delay days, penalty) tuples."""
    stats = InspectionStats(total_count=len(records))
    inspected_delays = []
    for inspection_type, result, delay, penalty in records:
        delay = delay or 0
        if inspection_type != "none":
            stats.inspected_count += 1
            inspected_delays.append(delay)
        if inspection_type in PHYSICAL_TYPES:
            stats.physical_count += 1
        elif inspection_type == "document":
            stats.document_count += 1
        elif inspection_type == "scan":
            stats.scan_count += 1
        if result == "passed":
            stats.passed_count += 1
        elif result == "failed":
            stats.failed_count += 1
        stats.total_penalty += Decimal(penalty or 0)
        stats.max_delay_days = max(stats.max_delay_days, delay)

    stats.inspection_rate = percent(stats.inspected_count, stats.total_count)
    stats.physical_rate = percent(stats.physical_count, stats.total_count)
    stats.pass_rate = percent(stats.passed_count, stats.total_count)
    if inspected_delays:
        stats.avg_delay_days = (
            Decimal(sum(inspected_delays)) / len(inspected_delays)
        ).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return stats


def inspection_tier(inspection_rate: float, physical_rate: float) -> RiskLevel:
    if inspection_rate >= 30 or physical_rate >= 20:
        return RiskLevel.HIGH
    if inspection_rate >= 15 or physical_rate >= 10:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def watchlist_tier(inspection_rate: float) -> RiskLevel:
    return RiskLevel.HIGH if inspection_rate >= 30 else RiskLevel.MEDIUM


UNSCORED_ITEM_SCORE = 20


def item_risk_score(tier: RiskLevel | None, inspection_rate: int) -> int:
    """Per-item score: high 80-100 scaled above the 30% threshold, medium 40 + rate,
    low at least 10, unscored 20."""
    if tier == RiskLevel.HIGH:
        return 80 + max(0, min(20, inspection_rate - 30))
    if tier == RiskLevel.MEDIUM:
        return 40 + inspection_rate
    if tier == RiskLevel.LOW:
        return max(10, inspection_rate)
    return UNSCORED_ITEM_SCORE


def aggregate_batch_risk(item_results: list[tuple[RiskLevel | None, int]]) -> tuple[int, RiskLevel]:
    """Mean score (rounded half-up) and the worst item tier.

    Any high item makes the batch high, otherwise any medium item makes it medium.
    """
    if not item_results:
        return 0, RiskLevel.LOW
    scores = [score for _, score in item_results]
    mean = (Decimal(sum(scores)) / len(scores)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    tiers = {tier for tier, _ in item_results}
    if RiskLevel.HIGH in tiers:
        level = RiskLevel.HIGH
    elif RiskLevel.MEDIUM in tiers:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW
    return int(mean), level
