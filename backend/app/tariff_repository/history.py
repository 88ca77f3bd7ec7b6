"""HistoryStore — confirmed (product name, material) → code classifications.

The usage counter is bumped with a single upsert-with-increment statement so that
concurrent approvals of the same key never lose an update.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import RepositoryError
from app.models.history import MatchHistoryRecord
from app.tariff_repository.codes import normalize_hs_code

logger = logging.getLogger("customs.history_store")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class HistoryHit:
    hs_code: str
    usage_count: int
    last_used_at: datetime | None = None


def history_key(product_name: str, material: str | None) -> tuple[str, str]:
    return product_name.strip(), (material or "").strip()


class HistoryStore:
    """Append/increment store for confirmed classifications."""

    async def increment(
        self,
        db: AsyncSession,
        product_name: str,
        material: str | None,
        hs_code: str,
    ) -> None:
        """Record one confirmation: insert with count 1 or add 1 and take the new code."""
        name, mat = history_key(product_name, material)
        if not name:
            return
        dialect = db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise RepositoryError(f"No atomic upsert available for dialect '{dialect}'")

        stmt = insert(MatchHistoryRecord).values(
            product_name=name,
            material=mat,
            hs_code=normalize_hs_code(hs_code),
            usage_count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["product_name", "material"],
            set_={
                "hs_code": stmt.excluded.hs_code,
                "usage_count": MatchHistoryRecord.usage_count + 1,
                "last_used_at": func.now(),
            },
        )
        try:
            await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("History increment failed for %r/%r: %s", name, mat, e)
            raise RepositoryError(f"History store unavailable: {e}") from e

    async def lookup(
        self,
        db: AsyncSession,
        product_name: str,
        material: str | None,
    ) -> HistoryHit | None:
        name, mat = history_key(product_name, material)
        try:
            record = (await db.execute(
                select(MatchHistoryRecord).where(
                    MatchHistoryRecord.product_name == name,
                    MatchHistoryRecord.material == mat,
                ).execution_options(populate_existing=True)
            )).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"History store unavailable: {e}") from e

        if record is None:
            return None
        return HistoryHit(
            hs_code=record.hs_code,
            usage_count=record.usage_count,
            last_used_at=record.last_used_at,
        )
