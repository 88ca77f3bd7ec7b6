"""Pure classification-matching functions — no DB dependency, easy to unit test."""

from dataclasses import dataclass, field
from decimal import Decimal

from app.models.cargo import MatchSource
from app.tariff_repository.rate_policy import TariffRow

# Confidence awarded by each catalog tier; history confidence is computed
TIER_CONFIDENCE: dict[MatchSource, int] = {
    MatchSource.EXACT: 100,
    MatchSource.PREFIX_8: 90,
    MatchSource.PREFIX_6: 80,
    MatchSource.FUZZY: 60,
    MatchSource.MANUAL: 100,
}


@dataclass
class RateSnapshot:
    """Rates copied from the resolved catalog row at match time."""

    duty_rate: Decimal | None = None
    vat_rate: Decimal | None = None
    anti_dumping_rate: Decimal | None = None
    countervailing_rate: Decimal | None = None

    @classmethod
    def from_row(cls, row: TariffRow | None, default_vat_rate: Decimal) -> "RateSnapshot | None":
        if row is None:
            return None
        return cls(
            duty_rate=row.duty,
            vat_rate=row.vat_rate if row.vat_rate is not None else default_vat_rate,
            anti_dumping_rate=row.anti_dumping,
            countervailing_rate=row.countervailing,
        )

    def as_dict(self) -> dict:
        return {
            "duty_rate": self.duty_rate,
            "vat_rate": self.vat_rate,
            "anti_dumping_rate": self.anti_dumping_rate,
            "countervailing_rate": self.countervailing_rate,
        }


@dataclass
class MatchOutcome:
    """Classification result for one line item."""

    hs_code: str | None
    confidence: int
    source: MatchSource | None
    rate_snapshot: RateSnapshot | None = None
    description: str | None = None
    notes: list[str] = field(default_factory=list)

    @classmethod
    def no_match(cls, notes: list[str] | None = None) -> "MatchOutcome":
        return cls(hs_code=None, confidence=0, source=None, notes=notes or [])


def history_confidence(
    usage_count: int,
    *,
    base: int = 70,
    step: int = 5,
    cap: int = 85,
) -> int:
    """Confidence for a history hit: rises with confirmations, capped below auto-approval."""
    return max(0, min(cap, base + usage_count * step))


def tier_outcome(
    source: MatchSource,
    row: TariffRow,
    default_vat_rate: Decimal,
    notes: list[str] | None = None,
) -> MatchOutcome:
    return MatchOutcome(
        hs_code=row.hs_code,
        confidence=TIER_CONFIDENCE[source],
        source=source,
        rate_snapshot=RateSnapshot.from_row(row, default_vat_rate),
        description=row.description,
        notes=list(notes or []),
    )
