"""TariffRepository — read-only access to the tariff catalog.

Every query goes through ``TariffQuery`` and returns detached ``TariffRow``
snapshots ranked by the rate resolution policy for the requested origin.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import RepositoryError
from app.models.tariff import TariffRate
from app.tariff_repository.codes import normalize_hs_code
from app.tariff_repository.query import (
    ActiveOnly,
    CodeEquals,
    CodePrefix,
    DescriptionContains,
    Not,
    OriginApplicable,
    TariffQuery,
)
from app.tariff_repository.rate_policy import RateResolutionPolicy, TariffRow

logger = logging.getLogger("customs.tariff_repository")


def _to_row(rate: TariffRate) -> TariffRow:
    if not rate.hs_code:
        raise RepositoryError(f"Tariff row {rate.id} has no classification code")
    return TariffRow(
        hs_code=normalize_hs_code(rate.hs_code),
        description=rate.description,
        description_en=rate.description_en,
        origin_country=rate.origin_country,
        origin_country_code=rate.origin_country_code,
        geographical_area=rate.geographical_area,
        duty_rate=rate.duty_rate,
        vat_rate=rate.vat_rate,
        anti_dumping_rate=rate.anti_dumping_rate,
        countervailing_rate=rate.countervailing_rate,
        unit=rate.unit,
    )


def _description_length(row: TariffRow) -> tuple:
    return (len(row.description or ""), row.hs_code)


def _code_order(row: TariffRow) -> tuple:
    return (row.hs_code,)


def _conservative_order(row: TariffRow) -> tuple:
    return (-row.anti_dumping, row.hs_code)


_SECONDARY = {
    "code": _code_order,
    "shortest_description": _description_length,
    "conservative": _conservative_order,
}


class TariffRepository:
    """Query contract over the catalog: lookup by code, prefix, description and origin."""

    def __init__(self, settings: Settings, policy: RateResolutionPolicy | None = None):
        self.policy = policy or RateResolutionPolicy(
            settings.rest_of_world_code, settings.geographic_blocs
        )
        self.rest_of_world_code = settings.rest_of_world_code

    async def lookup(
        self,
        db: AsyncSession,
        *,
        hs_code: str | None = None,
        code_prefix: str | None = None,
        exclude_prefix: str | None = None,
        description_contains: str | None = None,
        origin: str | None = None,
        order: str = "code",
        limit: int | None = None,
    ) -> list[TariffRow]:
        """Return active catalog rows matching every supplied filter.

        With an origin, rows specific to other origins are dropped and the rest are
        ranked specific origin, then bloc, then rest of world.
        """
        query = TariffQuery().where(ActiveOnly()).ordered_by(order)
        if hs_code:
            query = query.where(CodeEquals(normalize_hs_code(hs_code)))
        if code_prefix:
            query = query.where(CodePrefix(code_prefix))
        if exclude_prefix:
            query = query.where(Not(CodePrefix(exclude_prefix)))
        if description_contains:
            query = query.where(DescriptionContains(description_contains))
        if origin:
            query = query.where(OriginApplicable(
                origin=origin,
                blocs=self.policy.blocs_for(origin),
                rest_of_world_code=self.rest_of_world_code,
            ))
        else:
            query = query.limited(limit)

        try:
            result = await db.execute(query.to_statement())
            rows = [_to_row(rate) for rate in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Tariff lookup failed: %s", e)
            raise RepositoryError(f"Tariff catalog unavailable: {e}") from e

        if origin:
            rows = self.policy.rank(rows, origin, secondary=_SECONDARY[order])
            if limit is not None:
                rows = rows[:limit]
        return rows

    async def resolve(self, db: AsyncSession, hs_code: str, origin: str) -> TariffRow | None:
        """Most specific row for exactly this code and origin, or None."""
        rows = await self.lookup(db, hs_code=hs_code, origin=origin)
        return rows[0] if rows else None

    async def resolve_prefix(self, db: AsyncSession, prefix: str, origin: str) -> TariffRow | None:
        """Row under the prefix, origin-specific first, then highest anti-dumping duty."""
        rows = await self.lookup(
            db, code_prefix=prefix, origin=origin, order="conservative", limit=1
        )
        return rows[0] if rows else None

    async def resolve_codes(
        self,
        db: AsyncSession,
        *,
        origin: str,
        code_prefix: str | None = None,
        exclude_prefix: str | None = None,
        description_contains: str | None = None,
    ) -> dict[str, TariffRow]:
        """One resolved row per distinct code matching the filters."""
        rows = await self.lookup(
            db,
            code_prefix=code_prefix,
            exclude_prefix=exclude_prefix,
            description_contains=description_contains,
            origin=origin,
        )
        return self.policy.best_per_code(rows, origin)
