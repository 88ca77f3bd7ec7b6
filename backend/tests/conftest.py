import uuid
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import Settings
from app.models.base import Base
# Import all models so they register with Base.metadata for create_all
import app.models  # noqa: F401
from app.models.tariff import TariffRate


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite://", _env_file=None)


@pytest.fixture
async def test_engine(tmp_path):
    # SQLite file per test (no Postgres dependency needed for unit tests)
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from app.database import get_db
    from app.dependencies import translation_cache
    from app.main import app

    async def override_get_db():
        yield db_session
        await db_session.flush()

    app.dependency_overrides[get_db] = override_get_db
    # The process-wide cache would otherwise keep entries from an earlier test database
    translation_cache.invalidate()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def add_tariff(db_session):
    """Insert one catalog row; rates are percentages."""

    async def _add(
        hs_code: str,
        description: str = "",
        *,
        origin_code: str | None = None,
        area: str | None = None,
        duty: float = 0,
        vat: float | None = 19,
        ad: float = 0,
        cv: float = 0,
        description_en: str | None = None,
        is_active: bool = True,
    ) -> TariffRate:
        rate = TariffRate(
            id=uuid.uuid4(),
            hs_code=hs_code,
            description=description,
            description_en=description_en,
            origin_country_code=origin_code,
            geographical_area=area,
            duty_rate=Decimal(str(duty)),
            vat_rate=Decimal(str(vat)) if vat is not None else None,
            anti_dumping_rate=Decimal(str(ad)),
            countervailing_rate=Decimal(str(cv)),
            is_active=is_active,
        )
        db_session.add(rate)
        await db_session.flush()
        return rate

    return _add


@pytest.fixture
def batch_items():
    def _items(*rows: dict) -> list[dict]:
        return [
            {"product_name": "item", "origin_country": "CN", "quantity": 1, "unit_price": 100, **row}
            for row in rows
        ]

    return _items
