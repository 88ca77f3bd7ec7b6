"""Typed query builder for the tariff catalog.

Predicates are small value objects; ``TariffQuery`` composes them into a single
parameterized SQLAlchemy statement at the repository boundary, so matching and
recommendation code never assembles SQL text.
"""

from dataclasses import dataclass, field

from sqlalchemy import Select, func, or_, select
from sqlalchemy.sql.elements import ColumnElement

from app.models.tariff import TariffRate


class Predicate:
    def clause(self) -> ColumnElement[bool]:
        raise NotImplementedError


@dataclass(frozen=True)
class CodeEquals(Predicate):
    hs_code: str

    def clause(self) -> ColumnElement[bool]:
        return TariffRate.hs_code == self.hs_code


@dataclass(frozen=True)
class CodePrefix(Predicate):
    prefix: str

    def clause(self) -> ColumnElement[bool]:
        return TariffRate.hs_code.startswith(self.prefix, autoescape=True)


@dataclass(frozen=True)
class DescriptionContains(Predicate):
    """Case-insensitive substring match on either description column."""

    text: str

    def clause(self) -> ColumnElement[bool]:
        return or_(
            TariffRate.description.icontains(self.text, autoescape=True),
            TariffRate.description_en.icontains(self.text, autoescape=True),
        )


@dataclass(frozen=True)
class OriginApplicable(Predicate):
    """Rows for this origin, its blocs, or any origin (null, empty, rest-of-world)."""

    origin: str
    blocs: tuple[str, ...] = ()
    rest_of_world_code: str = "ERGA_OMNES"

    def clause(self) -> ColumnElement[bool]:
        conditions = [
            TariffRate.origin_country_code == self.origin,
            TariffRate.origin_country_code.is_(None),
            TariffRate.origin_country_code == "",
            TariffRate.origin_country_code == self.rest_of_world_code,
        ]
        if self.blocs:
            conditions.append(TariffRate.geographical_area.in_(self.blocs))
        return or_(*conditions)


@dataclass(frozen=True)
class Not(Predicate):
    inner: Predicate

    def clause(self) -> ColumnElement[bool]:
        return ~self.inner.clause()


@dataclass(frozen=True)
class ActiveOnly(Predicate):
    def clause(self) -> ColumnElement[bool]:
        return TariffRate.is_active.is_(True)


_ORDERINGS = {
    "code": lambda: [TariffRate.hs_code.asc(), TariffRate.id.asc()],
    "shortest_description": lambda: [
        func.length(TariffRate.description).asc(),
        TariffRate.hs_code.asc(),
        TariffRate.id.asc(),
    ],
    "conservative": lambda: [
        TariffRate.anti_dumping_rate.desc().nulls_last(),
        TariffRate.hs_code.asc(),
        TariffRate.id.asc(),
    ],
}


@dataclass(frozen=True)
class TariffQuery:
    predicates: tuple[Predicate, ...] = ()
    order: str = "code"
    limit: int | None = None

    def where(self, *predicates: Predicate) -> "TariffQuery":
        return TariffQuery(self.predicates + predicates, self.order, self.limit)

    def ordered_by(self, order: str) -> "TariffQuery":
        if order not in _ORDERINGS:
            raise ValueError(f"Unknown ordering: {order}")
        return TariffQuery(self.predicates, order, self.limit)

    def limited(self, limit: int | None) -> "TariffQuery":
        return TariffQuery(self.predicates, self.order, limit)

    def to_statement(self) -> Select:
        stmt = select(TariffRate).where(*[p.clause() for p in self.predicates])
        stmt = stmt.order_by(*_ORDERINGS[self.order]())
        if self.limit is not None:
            stmt = stmt.limit(self.limit)
        return stmt
