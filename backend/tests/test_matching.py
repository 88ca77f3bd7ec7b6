"""Tests for multi-tier classification matching and its status triggers."""

from decimal import Decimal

import pytest

from app.audit_generator.service import AuditService
from app.batches.service import BatchService
from app.exceptions import InvalidInputError, RepositoryError
from app.hitl_workflow.triggers import classify_match
from app.matching_engine.matchers import history_confidence
from app.matching_engine.service import ClassificationMatcher
from app.models.cargo import MatchSource, MatchStatus
from app.tariff_repository.history import HistoryStore
from app.tariff_repository.repository import TariffRepository


class FailingExactRepository(TariffRepository):
    """Catalog whose exact-code lookups are down; prefix and text lookups still work."""

    async def resolve(self, db, hs_code, origin):
        raise RepositoryError("catalog timeout")


# ── Pure function tests (no DB needed) ──


class TestClassifyMatch:
    def test_threshold_is_inclusive(self):
        assert classify_match(90)[0] == MatchStatus.AUTO_APPROVED
        assert classify_match(89)[0] == MatchStatus.REVIEW

    def test_zero_is_no_match(self):
        assert classify_match(0)[0] == MatchStatus.NO_MATCH

    def test_custom_threshold(self):
        assert classify_match(85, auto_approve_threshold=80)[0] == MatchStatus.AUTO_APPROVED


class TestHistoryConfidence:
    def test_rises_with_usage(self):
        assert history_confidence(1) == 75
        assert history_confidence(2) == 80

    def test_capped_below_auto_approval(self):
        assert history_confidence(3) == 85
        assert history_confidence(50) == 85


# ── Tier resolution ──


class TestMatchTiers:
    @pytest.mark.asyncio
    async def test_exact(self, db_session, add_tariff, settings):
        await add_tariff("8471300000", "Portable computers", duty=0)
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="laptop", customer_hs_code="8471.30.00.00"
        )
        assert outcome.hs_code == "8471300000"
        assert outcome.confidence == 100
        assert outcome.source == MatchSource.EXACT

    @pytest.mark.asyncio
    async def test_prefix_8(self, db_session, add_tariff, settings):
        await add_tariff("8471300090", "Portable computers")
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="laptop", customer_hs_code="8471300010"
        )
        assert outcome.hs_code == "8471300090"
        assert (outcome.confidence, outcome.source) == (90, MatchSource.PREFIX_8)

    @pytest.mark.asyncio
    async def test_prefix_6(self, db_session, add_tariff, settings):
        await add_tariff("8471300090", "Portable computers")
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="laptop", customer_hs_code="8471309999"
        )
        assert (outcome.confidence, outcome.source) == (80, MatchSource.PREFIX_6)

    @pytest.mark.asyncio
    async def test_history(self, db_session, add_tariff, settings):
        await add_tariff("7318150000", "Screws and bolts", duty=3.7)
        store = HistoryStore()
        await store.increment(db_session, "hex bolt", "steel", "7318150000")
        await store.increment(db_session, "hex bolt", "steel", "7318150000")

        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="hex bolt", material="steel"
        )
        assert outcome.hs_code == "7318150000"
        assert (outcome.confidence, outcome.source) == (80, MatchSource.HISTORY)
        assert outcome.rate_snapshot.duty_rate == Decimal("3.7")

    @pytest.mark.asyncio
    async def test_history_requires_same_material(self, db_session, settings):
        await HistoryStore().increment(db_session, "hex bolt", "steel", "7318150000")
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="hex bolt", material="brass"
        )
        assert outcome.confidence == 0

    @pytest.mark.asyncio
    async def test_fuzzy_prefers_shortest_description(self, db_session, add_tariff, settings):
        await add_tariff("9403300000", "Office desk of wood")
        await add_tariff("9403600000", "Desk")
        outcome = await ClassificationMatcher(settings).match(db_session, product_name="desk")
        assert outcome.hs_code == "9403600000"
        assert (outcome.confidence, outcome.source) == (60, MatchSource.FUZZY)

    @pytest.mark.asyncio
    async def test_no_match(self, db_session, settings):
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="unobtainium", customer_hs_code="9999999999"
        )
        assert outcome.confidence == 0
        assert outcome.source is None
        assert outcome.hs_code is None

    @pytest.mark.asyncio
    async def test_blank_name_is_no_match(self, db_session, add_tariff, settings):
        await add_tariff("8471300000", "Laptops")
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="   ", origin="CN"
        )
        assert outcome.confidence == 0
        assert outcome.source is None
        assert outcome.hs_code is None

    @pytest.mark.asyncio
    async def test_unknown_code_falls_through_to_text(self, db_session, add_tariff, settings):
        await add_tariff("9403600000", "Desk")
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="desk", customer_hs_code="1111111111"
        )
        assert outcome.source == MatchSource.FUZZY

    @pytest.mark.asyncio
    async def test_failing_tier_falls_through(self, db_session, add_tariff, settings):
        await add_tariff("8471300090", "Portable computers")
        matcher = ClassificationMatcher(settings, repository=FailingExactRepository(settings))
        outcome = await matcher.match(db_session, product_name="laptop", customer_hs_code="8471300010")
        assert outcome.source == MatchSource.PREFIX_8
        assert "exact lookup failed" in outcome.notes

    @pytest.mark.asyncio
    async def test_malformed_code_rejected(self, db_session, settings):
        with pytest.raises(InvalidInputError):
            await ClassificationMatcher(settings).match(
                db_session, product_name="laptop", customer_hs_code="n/a"
            )

    @pytest.mark.asyncio
    async def test_origin_specific_rates_in_snapshot(self, db_session, add_tariff, settings):
        await add_tariff("6403990000", "Footwear", duty=8)
        await add_tariff("6403990000", "Footwear", origin_code="VN", duty=0)
        outcome = await ClassificationMatcher(settings).match(
            db_session, product_name="shoe", customer_hs_code="6403990000", origin="vn"
        )
        assert outcome.rate_snapshot.duty_rate == 0


# ── Batch matching ──


class TestMatchBatch:
    @pytest.mark.asyncio
    async def test_batch_counts_and_history(self, db_session, add_tariff, settings, batch_items):
        await add_tariff("8471300000", "Portable computers")
        await add_tariff("9403600000", "Desk")
        batch = await BatchService().create_batch(
            db_session,
            name="B1",
            items=batch_items(
                {"product_name": "laptop", "customer_hs_code": "8471300000", "material": "aluminium"},
                {"product_name": "desk"},
                {"product_name": "unobtainium"},
            ),
        )
        matcher = ClassificationMatcher(settings)

        result = await matcher.match_batch(db_session, batch.id)
        assert result["processed"] == 3
        assert result["auto_approved"] == 1
        assert result["review"] == 1
        assert result["no_match"] == 1
        assert result["errors"] == []

        # Only the auto-approved item is confirmed into history
        assert (await HistoryStore().lookup(db_session, "laptop", "aluminium")).usage_count == 1
        assert await HistoryStore().lookup(db_session, "desk", None) is None

        # Already-matched items are not pending, so a second run is a no-op
        again = await matcher.match_batch(db_session, batch.id)
        assert again["processed"] == 0

    @pytest.mark.asyncio
    async def test_confidence_bounds_and_provenance(self, db_session, add_tariff, settings, batch_items):
        await add_tariff("8471300000", "Portable computers")
        batch = await BatchService().create_batch(
            db_session,
            name=None,
            items=batch_items(
                {"product_name": "laptop", "customer_hs_code": "8471300000"},
                {"product_name": "portable computers"},
                {"product_name": "nothing like it"},
            ),
        )
        await ClassificationMatcher(settings).match_batch(db_session, batch.id)
        for item in batch.items:
            assert 0 <= item.match_confidence <= 100
            assert (item.match_source is None) == (item.match_confidence == 0)

    @pytest.mark.asyncio
    async def test_stats_and_review_queue(self, db_session, add_tariff, settings, batch_items):
        await add_tariff("8471300090", "Portable computers")
        await add_tariff("9403600000", "Desk")
        batch = await BatchService().create_batch(
            db_session,
            name=None,
            items=batch_items(
                {"product_name": "desk", "origin_country": None},
                {"product_name": "laptop", "customer_hs_code": "8471309999", "material": "plastic"},
            ),
        )
        matcher = ClassificationMatcher(settings)
        await matcher.match_batch(db_session, batch.id)

        stats = await matcher.get_stats(db_session, batch.id)
        assert stats["total"] == 2
        assert stats["review"] == 2
        assert stats["matched"] == 0
        assert stats["missing_origin"] == 1
        assert stats["missing_material"] == 1

        queue = await matcher.get_review_queue(db_session, batch.id)
        assert [i.match_confidence for i in queue] == [80, 60]

    @pytest.mark.asyncio
    async def test_rematch(self, db_session, add_tariff, settings, batch_items):
        batch = await BatchService().create_batch(
            db_session, name=None, items=batch_items({"product_name": "gadget", "customer_hs_code": "8517130000"})
        )
        matcher = ClassificationMatcher(settings)
        await matcher.match_batch(db_session, batch.id)
        item = batch.items[0]
        assert item.match_status == MatchStatus.NO_MATCH

        await add_tariff("8517130000", "Smartphones")
        item = await matcher.rematch_item(db_session, item.id)
        assert item.match_status == MatchStatus.AUTO_APPROVED
        assert item.matched_hs_code == "8517130000"

        events = await AuditService.get_entity_events(db_session, item.id)
        assert [e.event_type for e in events] == ["CARGO_ITEM_REMATCHED"]

        with pytest.raises(InvalidInputError):
            await matcher.rematch_item(db_session, item.id)

    @pytest.mark.asyncio
    async def test_translation_filled_on_match(self, db_session, add_tariff, settings, batch_items):
        from app.models.translation import ProductNameTranslation
        from app.translation.cache import NameTranslationCache

        db_session.add(ProductNameTranslation(name="笔记本电脑", name_en="laptop"))
        await db_session.flush()
        batch = await BatchService().create_batch(
            db_session, name=None, items=batch_items({"product_name": "笔记本电脑"})
        )
        matcher = ClassificationMatcher(settings, translations=NameTranslationCache())
        await matcher.match_batch(db_session, batch.id)
        assert batch.items[0].product_name_en == "laptop"
