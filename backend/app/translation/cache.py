"""NameTranslationCache — TTL cache of product-name translations.

Display-only data: used to fill English product names, never read by the
classification or tax computation. One instance is shared per process through
``app.dependencies``; the whole table is reloaded once the TTL expires.
"""

import logging
import time
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import RepositoryError
from app.models.translation import ProductNameTranslation

logger = logging.getLogger("customs.translation_cache")


class NameTranslationCache:
    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, str] = {}
        self._loaded_at: float | None = None

    @property
    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self.ttl_seconds

    def invalidate(self) -> None:
        self._entries = {}
        self._loaded_at = None

    async def refresh(self, db: AsyncSession) -> int:
        """Reload every translation. Returns the number of entries cached."""
        try:
            rows = (await db.execute(
                select(ProductNameTranslation.name, ProductNameTranslation.name_en)
            )).all()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Translation table unavailable: {e}") from e

        self._entries = {name.strip().lower(): name_en for name, name_en in rows if name and name_en}
        self._loaded_at = self._clock()
        logger.info("Loaded %d product name translations", len(self._entries))
        return len(self._entries)

    async def get(self, db: AsyncSession, name: str | None) -> str | None:
        """English name for ``name``: exact match first, then the longest contained key."""
        if not name:
            return None
        if self.is_stale:
            await self.refresh(db)

        key = name.strip().lower()
        if key in self._entries:
            return self._entries[key]

        partial = [k for k in self._entries if k and k in key]
        if partial:
            return self._entries[max(partial, key=len)]
        return None
