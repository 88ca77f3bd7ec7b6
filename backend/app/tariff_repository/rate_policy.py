"""Rate resolution policy — which catalog row applies to a given origin.

Rules are evaluated in declared priority order; the first matching rule gives the
row's tier. Rows that no rule accepts (rows specific to another origin) are absent.
"""

import enum
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal


class RateTier(enum.IntEnum):
    SPECIFIC_ORIGIN = 0
    GEOGRAPHIC_BLOC = 1
    REST_OF_WORLD = 2


@dataclass(frozen=True)
class TariffRow:
    """Immutable snapshot of a catalog row, detached from the ORM session."""

    hs_code: str
    description: str | None
    description_en: str | None
    origin_country: str | None
    origin_country_code: str | None
    geographical_area: str | None
    duty_rate: Decimal | None
    vat_rate: Decimal | None
    anti_dumping_rate: Decimal | None
    countervailing_rate: Decimal | None
    unit: str | None

    @property
    def anti_dumping(self) -> Decimal:
        return self.anti_dumping_rate or Decimal("0")

    @property
    def duty(self) -> Decimal:
        return self.duty_rate or Decimal("0")

    @property
    def countervailing(self) -> Decimal:
        return self.countervailing_rate or Decimal("0")

    @property
    def tariff_burden(self) -> Decimal:
        return self.duty + self.anti_dumping + self.countervailing


@dataclass(frozen=True)
class ResolutionRule:
    tier: RateTier
    applies: Callable[[TariffRow, str], bool]


class RateResolutionPolicy:
    """Ordered rule list: specific origin, geographic bloc, rest of world, absent."""

    def __init__(self, rest_of_world_code: str, geographic_blocs: dict[str, list[str]] | None = None):
        self.rest_of_world_code = rest_of_world_code
        self.geographic_blocs = {k: set(v) for k, v in (geographic_blocs or {}).items()}
        self.rules: list[ResolutionRule] = [
            ResolutionRule(RateTier.SPECIFIC_ORIGIN, self._is_specific),
            ResolutionRule(RateTier.GEOGRAPHIC_BLOC, self._is_bloc),
            ResolutionRule(RateTier.REST_OF_WORLD, self._is_generic),
        ]

    def blocs_for(self, origin: str) -> tuple[str, ...]:
        return tuple(sorted(b for b, members in self.geographic_blocs.items() if origin in members))

    def tier(self, row: TariffRow, origin: str) -> RateTier | None:
        for rule in self.rules:
            if rule.applies(row, origin):
                return rule.tier
        return None

    def rank(
        self,
        rows: list[TariffRow],
        origin: str,
        secondary: Callable[[TariffRow], tuple] | None = None,
    ) -> list[TariffRow]:
        """Drop inapplicable rows and order the rest by tier.

        Within a tier, ``secondary`` orders rows (defaults to none); ties then prefer the
        higher anti-dumping and duty rate so the conservative row wins.
        """
        ranked = []
        for row in rows:
            tier = self.tier(row, origin)
            if tier is not None:
                ranked.append((tier, row))

        def key(entry):
            tier, row = entry
            extra = secondary(row) if secondary else ()
            return (tier, *extra, -row.anti_dumping, -row.duty, row.hs_code)

        ranked.sort(key=key)
        return [row for _, row in ranked]

    def resolve(self, rows: list[TariffRow], origin: str) -> TariffRow | None:
        ranked = self.rank(rows, origin)
        return ranked[0] if ranked else None

    def best_per_code(self, rows: list[TariffRow], origin: str) -> dict[str, TariffRow]:
        """Resolve each distinct code independently, preserving first-seen code order."""
        by_code: dict[str, list[TariffRow]] = {}
        for row in rows:
            by_code.setdefault(row.hs_code, []).append(row)
        resolved = {}
        for code, code_rows in by_code.items():
            best = self.resolve(code_rows, origin)
            if best is not None:
                resolved[code] = best
        return resolved

    def _is_specific(self, row: TariffRow, origin: str) -> bool:
        return bool(row.origin_country_code) and row.origin_country_code == origin

    def _is_bloc(self, row: TariffRow, origin: str) -> bool:
        if not row.geographical_area:
            return False
        return origin in self.geographic_blocs.get(row.geographical_area, set())

    def _is_generic(self, row: TariffRow, origin: str) -> bool:
        # Rows scoped to a bloc never apply to non-members
        if row.geographical_area in self.geographic_blocs:
            return False
        return not row.origin_country_code or row.origin_country_code == self.rest_of_world_code
