"""Tests for TariffRepository lookups and the HistoryStore against SQLite."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from app.models.history import MatchHistoryRecord
from app.tariff_repository.history import HistoryStore
from app.tariff_repository.repository import TariffRepository


# ── Catalog lookups ──


class TestTariffRepository:
    @pytest.mark.asyncio
    async def test_codes_are_normalized_on_ingestion(self, db_session, add_tariff):
        rate = await add_tariff("6403.99", "Footwear")
        assert rate.hs_code == "6403990000"

    @pytest.mark.asyncio
    async def test_exact_lookup_prefers_origin_specific_row(self, db_session, add_tariff, settings):
        await add_tariff("6403990000", "Footwear", duty=8)
        await add_tariff("6403990000", "Footwear", origin_code="CN", duty=8, ad=16.5)
        repo = TariffRepository(settings)

        row = await repo.resolve(db_session, "6403990000", "CN")
        assert row.origin_country_code == "CN"
        assert row.anti_dumping == Decimal("16.5")

    @pytest.mark.asyncio
    async def test_falls_back_to_generic_row(self, db_session, add_tariff, settings):
        await add_tariff("6403990000", "Footwear", origin_code="ERGA_OMNES", duty=8)
        await add_tariff("6403990000", "Footwear", origin_code="US", duty=0)
        repo = TariffRepository(settings)

        row = await repo.resolve(db_session, "6403990000", "CN")
        assert row.origin_country_code == "ERGA_OMNES"
        assert row.duty == Decimal("8")

    @pytest.mark.asyncio
    async def test_other_origin_rows_not_returned(self, db_session, add_tariff, settings):
        await add_tariff("6403990000", "Footwear", origin_code="US")
        repo = TariffRepository(settings)
        assert await repo.resolve(db_session, "6403990000", "CN") is None

    @pytest.mark.asyncio
    async def test_inactive_rows_ignored(self, db_session, add_tariff, settings):
        await add_tariff("6403990000", "Footwear", is_active=False)
        repo = TariffRepository(settings)
        assert await repo.resolve(db_session, "6403990000", "CN") is None

    @pytest.mark.asyncio
    async def test_bloc_row_applies_to_members_only(self, db_session, add_tariff, settings):
        await add_tariff("8471300000", "Laptops", area="EFTA", duty=0)
        repo = TariffRepository(settings)
        assert (await repo.resolve(db_session, "8471300000", "NO")).geographical_area == "EFTA"
        assert await repo.resolve(db_session, "8471300000", "CN") is None

    @pytest.mark.asyncio
    async def test_prefix_lookup(self, db_session, add_tariff, settings):
        await add_tariff("8471300000", "Portable computers")
        await add_tariff("8471410000", "Other computers")
        repo = TariffRepository(settings)

        row = await repo.resolve_prefix(db_session, "847130", "CN")
        assert row.hs_code == "8471300000"
        assert await repo.resolve_prefix(db_session, "847199", "CN") is None

    @pytest.mark.asyncio
    async def test_prefix_prefers_anti_dumping_row_within_origin(self, db_session, add_tariff, settings):
        await add_tariff("6403999100", "Footwear, leather uppers", origin_code="CN", duty=8)
        await add_tariff("6403999300", "Footwear, other", origin_code="CN", duty=8, ad=16.5)
        await add_tariff("6403999000", "Footwear", duty=8, ad=30)
        repo = TariffRepository(settings)

        row = await repo.resolve_prefix(db_session, "640399", "CN")
        assert row.hs_code == "6403999300"
        assert row.anti_dumping == Decimal("16.5")

    @pytest.mark.asyncio
    async def test_description_lookup_is_case_insensitive(self, db_session, add_tariff, settings):
        await add_tariff("9403600000", "Wooden furniture for offices")
        await add_tariff("9403300000", "Wooden furniture")
        repo = TariffRepository(settings)

        rows = await repo.lookup(
            db_session, description_contains="WOODEN FURNITURE", origin="CN", order="shortest_description"
        )
        assert [r.hs_code for r in rows] == ["9403300000", "9403600000"]

    @pytest.mark.asyncio
    async def test_description_lookup_escapes_wildcards(self, db_session, add_tariff, settings):
        await add_tariff("9403300000", "Wooden furniture")
        repo = TariffRepository(settings)
        assert await repo.lookup(db_session, description_contains="%", origin="CN") == []

    @pytest.mark.asyncio
    async def test_resolve_codes_excludes_prefix(self, db_session, add_tariff, settings):
        await add_tariff("6403991000", "Footwear A")
        await add_tariff("6403999300", "Footwear B")
        await add_tariff("6403910000", "Footwear C")
        repo = TariffRepository(settings)

        resolved = await repo.resolve_codes(
            db_session, origin="CN", code_prefix="640399", exclude_prefix="64039910"
        )
        assert set(resolved) == {"6403999300"}


# ── History store ──


class TestHistoryStore:
    @pytest.mark.asyncio
    async def test_lookup_missing(self, db_session):
        assert await HistoryStore().lookup(db_session, "bolt", "steel") is None

    @pytest.mark.asyncio
    async def test_increment_inserts_then_counts(self, db_session):
        store = HistoryStore()
        await store.increment(db_session, "bolt", "steel", "7318.15")
        await store.increment(db_session, "bolt", "steel", "7318150000")

        hit = await store.lookup(db_session, "bolt", "steel")
        assert hit.hs_code == "7318150000"
        assert hit.usage_count == 2

    @pytest.mark.asyncio
    async def test_latest_code_wins(self, db_session):
        store = HistoryStore()
        await store.increment(db_session, "bolt", "steel", "7318150000")
        await store.increment(db_session, "bolt", "steel", "7318160000")

        hit = await store.lookup(db_session, "bolt", "steel")
        assert hit.hs_code == "7318160000"
        assert hit.usage_count == 2

    @pytest.mark.asyncio
    async def test_material_is_part_of_key(self, db_session):
        store = HistoryStore()
        await store.increment(db_session, "bolt", "steel", "7318150000")
        await store.increment(db_session, "bolt", None, "7318160000")

        assert (await store.lookup(db_session, "bolt", "steel")).usage_count == 1
        assert (await store.lookup(db_session, "bolt", "")).hs_code == "7318160000"
        rows = (await db_session.execute(select(MatchHistoryRecord))).scalars().all()
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_blank_name_not_recorded(self, db_session):
        await HistoryStore().increment(db_session, "   ", "steel", "7318150000")
        rows = (await db_session.execute(select(MatchHistoryRecord))).scalars().all()
        assert rows == []
