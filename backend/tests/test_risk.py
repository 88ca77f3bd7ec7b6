"""Tests for declared-value and inspection risk statistics and RiskAnalyticsService."""

import uuid
from decimal import Decimal

import pytest

from app.batches.service import BatchService
from app.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from app.matching_engine.service import ClassificationMatcher
from app.models.risk_record import DeclarationResult, InspectionResult
from app.risk_analytics.service import RiskAnalyticsService
from app.risk_analytics.statistics import (
    DeclarationStats,
    RiskLevel,
    aggregate_batch_risk,
    assess_declared_price,
    compute_declaration_stats,
    compute_inspection_stats,
    inspection_tier,
    item_risk_score,
    percent,
    percentile_cont,
    population_risk,
    suggested_min_price,
)

D = Decimal

TIER_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]


def _population():
    """Five accepted prices 100..140, one questioned, one unpriced."""
    records = [(D(p), "passed") for p in (100, 110, 120, 130, 140)]
    records += [(D("50"), "questioned"), (D("0"), "passed")]
    return compute_declaration_stats(records)


# ── Pure function tests (no DB needed) ──


class TestPercentiles:
    def test_percentile_cont_interpolates(self):
        values = [D(v) for v in (10, 20, 30, 40, 50)]
        assert percentile_cont(values, 0.10) == D("14")
        assert percentile_cont(values, 0.25) == D("20")
        assert percentile_cont(values, 1.0) == D("50")
        assert percentile_cont([], 0.5) is None

    def test_percent_rounds_half_up(self):
        assert percent(1, 8) == 13
        assert percent(1, 3) == 33
        assert percent(5, 0) == 0


class TestDeclarationStats:
    def test_population(self):
        stats = _population()
        assert stats.total_count == 6
        assert stats.pass_count == 5
        assert stats.questioned_count == 1
        assert stats.pass_rate == 83
        assert stats.min_pass_price == D("100")
        assert stats.avg_pass_price == D("120")
        assert stats.p10_pass_price == D("104")
        assert stats.p25_pass_price == D("110")
        assert population_risk(stats) == RiskLevel.MEDIUM

    def test_suggested_min_price_never_below_minimum(self):
        assert suggested_min_price(_population()) == D("100.00")

    def test_suggested_min_price_from_p10(self):
        stats = compute_declaration_stats([(D("100"), "passed")] + [(D("1000"), "passed")] * 9)
        assert stats.p10_pass_price == D("910")
        assert suggested_min_price(stats) == D("864.50")

    def test_no_passed_records(self):
        stats = compute_declaration_stats([(D("10"), "rejected")])
        assert stats.found
        assert stats.min_pass_price is None
        assert suggested_min_price(stats) is None
        assert population_risk(stats) == RiskLevel.HIGH


class TestAssessDeclaredPrice:
    def test_tiers(self):
        stats = _population()
        assert assess_declared_price(D("90"), stats).risk_level == RiskLevel.HIGH
        assert assess_declared_price(D("102"), stats).risk_level == RiskLevel.MEDIUM
        assert assess_declared_price(D("105"), stats).risk_level == RiskLevel.LOW

    def test_below_minimum_suggests_raising(self):
        assessment = assess_declared_price(D("90"), _population())
        assert any("100.00" in s for s in assessment.suggestions)

    def test_lowering_price_never_lowers_tier(self):
        stats = _population()
        previous = RiskLevel.LOW
        for price in range(200, 0, -1):
            level = assess_declared_price(D(price), stats).risk_level
            assert TIER_ORDER.index(level) >= TIER_ORDER.index(previous)
            previous = level

    def test_low_pass_rate_escalates(self):
        stats = compute_declaration_stats(
            [(D("100"), "passed"), (D("100"), "rejected"), (D("100"), "questioned")]
        )
        assessment = assess_declared_price(D("500"), stats)
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert any("33%" in w for w in assessment.warnings)

    def test_no_history_is_unknown(self):
        assessment = assess_declared_price(D("100"), DeclarationStats())
        assert assessment.risk_level == RiskLevel.UNKNOWN
        assert assessment.warnings


class TestInspectionStats:
    def test_counts_and_rates(self):
        records = [
            ("physical", "passed", 2, D("0")),
            ("full", "failed", 6, D("500")),
            ("physical", "passed", 1, None),
            ("document", "passed", 0, D("0")),
        ] + [("none", "passed", 0, D("0"))] * 6
        stats = compute_inspection_stats(records)
        assert stats.total_count == 10
        assert stats.inspected_count == 4
        assert stats.physical_count == 3
        assert stats.document_count == 1
        assert stats.inspection_rate == 40
        assert stats.physical_rate == 30
        assert stats.pass_rate == 90
        assert stats.failed_count == 1
        assert stats.avg_delay_days == D("2.3")
        assert stats.max_delay_days == 6
        assert stats.as_dict()["total_penalty"] == D("500.00")

    @pytest.mark.parametrize("inspection_rate,physical_rate,expected", [
        (30, 0, RiskLevel.HIGH),
        (0, 20, RiskLevel.HIGH),
        (29, 19, RiskLevel.MEDIUM),
        (15, 0, RiskLevel.MEDIUM),
        (0, 10, RiskLevel.MEDIUM),
        (14, 9, RiskLevel.LOW),
    ])
    def test_inspection_tier(self, inspection_rate, physical_rate, expected):
        assert inspection_tier(inspection_rate, physical_rate) == expected

    @pytest.mark.parametrize("tier,rate,expected", [
        (RiskLevel.HIGH, 45, 95),
        (RiskLevel.HIGH, 80, 100),
        (RiskLevel.HIGH, 20, 80),
        (RiskLevel.MEDIUM, 20, 60),
        (RiskLevel.LOW, 5, 10),
        (RiskLevel.LOW, 12, 12),
        (None, 0, 20),
    ])
    def test_item_risk_score(self, tier, rate, expected):
        assert item_risk_score(tier, rate) == expected

    def test_aggregate_batch_risk(self):
        assert aggregate_batch_risk([(RiskLevel.LOW, 10), (RiskLevel.HIGH, 95)]) == (53, RiskLevel.HIGH)
        assert aggregate_batch_risk([(None, 20), (RiskLevel.LOW, 10)]) == (15, RiskLevel.LOW)
        assert aggregate_batch_risk([(RiskLevel.MEDIUM, 50), (None, 20)])[1] == RiskLevel.MEDIUM
        assert aggregate_batch_risk([]) == (0, RiskLevel.LOW)


# ── RiskAnalyticsService over stored records ──


async def _inspections(service, db, hs_code, kinds, origin="CN"):
    for kind in kinds:
        await service.record_inspection(
            db, hs_code=hs_code, origin_country=origin, inspection_type=kind,
            result="passed", delay_days=1,
        )


class TestDeclarationService:
    @pytest.mark.asyncio
    async def test_stats_and_check(self, db_session, settings):
        service = RiskAnalyticsService(settings)
        for price in (100, 110, 120, 130, 140):
            await service.record_declaration(
                db_session, hs_code="6403.99.00.00", declared_unit_price=price,
                origin_country="cn", result="passed",
            )

        stats = await service.get_declaration_stats(db_session, "6403990000", "CN")
        assert stats["found"] is True
        assert stats["stats"]["pass_rate"] == 100
        assert stats["suggested_min_price"] == D("100.00")
        assert stats["risk_level"] == "low"

        check = await service.check_declaration_risk(db_session, "6403990000", 90, "CN")
        assert check["risk_level"] == "high"

        other_origin = await service.check_declaration_risk(db_session, "6403990000", 90, "VN")
        assert other_origin["found"] is False
        assert other_origin["risk_level"] == "unknown"

    @pytest.mark.asyncio
    async def test_price_must_be_positive(self, db_session, settings):
        with pytest.raises(InvalidInputError):
            await RiskAnalyticsService(settings).check_declaration_risk(db_session, "6403990000", 0)

    @pytest.mark.asyncio
    async def test_resolve_only_pending(self, db_session, settings):
        service = RiskAnalyticsService(settings)
        record = await service.record_declaration(db_session, hs_code="6403990000", declared_unit_price=10)
        assert record.result == DeclarationResult.PENDING

        with pytest.raises(InvalidInputError):
            await service.resolve_declaration(db_session, record.id, "pending")

        resolved = await service.resolve_declaration(db_session, record.id, "questioned", "price too low")
        assert resolved.result == DeclarationResult.QUESTIONED

        with pytest.raises(InvalidTransitionError):
            await service.resolve_declaration(db_session, record.id, "passed")
        with pytest.raises(NotFoundError):
            await service.resolve_declaration(db_session, uuid.uuid4(), "passed")

    @pytest.mark.asyncio
    async def test_resolve_batch_declarations(self, db_session, settings, batch_items):
        batch = await BatchService().create_batch(
            db_session, name=None, items=batch_items({"product_name": "shoe"})
        )
        service = RiskAnalyticsService(settings)
        first = await service.record_declaration(
            db_session, hs_code="6403990000", declared_unit_price=10, batch_id=batch.id
        )
        second = await service.record_declaration(
            db_session, hs_code="6403990000", declared_unit_price=12, batch_id=batch.id
        )
        done = await service.record_declaration(
            db_session, hs_code="6403990000", declared_unit_price=15, batch_id=batch.id, result="passed"
        )
        elsewhere = await service.record_declaration(db_session, hs_code="6403990000", declared_unit_price=9)

        updated = await service.resolve_batch_declarations(db_session, batch.id, "questioned", "batch review")
        assert updated == 2
        assert first.result == second.result == DeclarationResult.QUESTIONED
        assert first.customs_note == "batch review"
        assert done.result == DeclarationResult.PASSED
        assert elsewhere.result == DeclarationResult.PENDING

        assert await service.resolve_batch_declarations(db_session, batch.id, "passed") == 0
        with pytest.raises(InvalidInputError):
            await service.resolve_batch_declarations(db_session, batch.id, "pending")
        with pytest.raises(NotFoundError):
            await service.resolve_batch_declarations(db_session, uuid.uuid4(), "passed")

    @pytest.mark.asyncio
    async def test_batch_check_and_record(self, db_session, add_tariff, settings, batch_items):
        await add_tariff("6403990000", "Footwear", duty=12)
        await add_tariff("9403600000", "Desk")
        batch = await BatchService().create_batch(
            db_session,
            name=None,
            items=batch_items(
                {"product_name": "shoe", "customer_hs_code": "6403990000", "unit_price": 90},
                {"product_name": "desk"},
            ),
        )
        await ClassificationMatcher(settings).match_batch(db_session, batch.id)
        service = RiskAnalyticsService(settings)
        for price in (100, 110, 120):
            await service.record_declaration(
                db_session, hs_code="6403990000", declared_unit_price=price,
                origin_country="CN", result="passed",
            )

        result = await service.check_batch_declarations(db_session, batch.id)
        shoe = batch.items[0]
        assert shoe.declaration_risk == "high"
        assert shoe.min_safe_price == D("100.00")
        assert result["summary"]["high"] == 1

        # Only the auto-approved item is confirmed
        assert await service.record_batch_declarations(db_session, batch.id) == 1


class TestInspectionService:
    @pytest.mark.asyncio
    async def test_watchlist(self, db_session, settings):
        service = RiskAnalyticsService(settings)
        await _inspections(service, db_session, "6403990000", ["physical", "document", "none"])
        await _inspections(service, db_session, "7318150000", ["physical", "physical"])
        await _inspections(service, db_session, "9403600000", ["scan", "none", "none", "none"])
        await _inspections(service, db_session, "8471300000", ["none", "none", "none"])

        watchlist = await service.get_high_inspection_codes(db_session)
        assert [w["hs_code"] for w in watchlist] == ["6403990000", "9403600000"]
        assert watchlist[0]["inspection_rate"] == 67
        assert watchlist[0]["risk_level"] == "high"
        assert watchlist[1]["inspection_rate"] == 25
        assert watchlist[1]["risk_level"] == "medium"

        only_vn = await service.get_high_inspection_codes(db_session, origin="VN")
        assert only_vn == []

    @pytest.mark.asyncio
    async def test_stats_unknown_without_history(self, db_session, settings):
        result = await RiskAnalyticsService(settings).get_inspection_stats(db_session, "6403990000")
        assert result["found"] is False
        assert result["risk_level"] == "unknown"

    @pytest.mark.asyncio
    async def test_resolve_inspection(self, db_session, settings):
        service = RiskAnalyticsService(settings)
        record = await service.record_inspection(db_session, hs_code="6403990000")
        resolved = await service.resolve_inspection(
            db_session, record.id, inspection_type="physical", result="failed",
            delay_days=4, penalty_amount="120.5",
        )
        assert resolved.result == InspectionResult.FAILED
        assert resolved.penalty_amount == D("120.50")
        with pytest.raises(InvalidTransitionError):
            await service.resolve_inspection(
                db_session, record.id, inspection_type="none", result="passed"
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("costs", [{"delay_days": -2}, {"penalty_amount": "-10"}])
    async def test_resolve_rejects_negative_costs(self, db_session, settings, costs):
        service = RiskAnalyticsService(settings)
        record = await service.record_inspection(db_session, hs_code="6403990000")
        with pytest.raises(InvalidInputError):
            await service.resolve_inspection(
                db_session, record.id, inspection_type="physical", result="failed", **costs
            )
        assert record.result == InspectionResult.PENDING

    @pytest.mark.asyncio
    async def test_record_rejects_negative_delay(self, db_session, settings):
        with pytest.raises(InvalidInputError):
            await RiskAnalyticsService(settings).record_inspection(
                db_session, hs_code="6403990000", delay_days=-1
            )

    @pytest.mark.asyncio
    async def test_batch_analysis(self, db_session, add_tariff, settings, batch_items):
        await add_tariff("6403990000", "Footwear", duty=12)
        await add_tariff("7318150000", "Screws", duty=3)
        batch = await BatchService().create_batch(
            db_session,
            name=None,
            items=batch_items(
                {"product_name": "shoe", "customer_hs_code": "6403990000"},
                {"product_name": "bolt", "customer_hs_code": "7318150000"},
            ),
        )
        await ClassificationMatcher(settings).match_batch(db_session, batch.id)
        service = RiskAnalyticsService(settings)
        await _inspections(service, db_session, "6403990000", ["physical", "document", "none"])

        result = await service.analyze_batch_inspection_risk(db_session, batch.id)

        # 67% inspected scores 100; the bolt has no history and scores 20
        assert [i["risk_score"] for i in result["items"]] == [100, 20]
        assert result["items"][1]["risk_level"] == "unknown"
        assert result["risk_score"] == 60
        assert result["risk_level"] == "high"
        assert result["high_risk_count"] == 1
        assert batch.risk_level == "high"

        assert await service.record_batch_inspections(db_session, batch.id) == 2
