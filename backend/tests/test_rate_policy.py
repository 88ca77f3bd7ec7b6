"""Tests for the rate resolution policy — which catalog row applies to an origin."""

from decimal import Decimal

from app.tariff_repository.rate_policy import RateResolutionPolicy, RateTier, TariffRow

BLOCS = {"EFTA": ["CH", "NO"], "ASEAN": ["VN", "TH"]}


def _row(code="6403990000", origin=None, area=None, duty="8", ad="0", description="shoes"):
    return TariffRow(
        hs_code=code,
        description=description,
        description_en=None,
        origin_country=None,
        origin_country_code=origin,
        geographical_area=area,
        duty_rate=Decimal(duty),
        vat_rate=Decimal("19"),
        anti_dumping_rate=Decimal(ad),
        countervailing_rate=Decimal("0"),
        unit=None,
    )


class TestRateTier:
    def setup_method(self):
        self.policy = RateResolutionPolicy("ERGA_OMNES", BLOCS)

    def test_specific_origin(self):
        assert self.policy.tier(_row(origin="CN"), "CN") == RateTier.SPECIFIC_ORIGIN

    def test_bloc_member(self):
        assert self.policy.tier(_row(area="ASEAN"), "VN") == RateTier.GEOGRAPHIC_BLOC

    def test_bloc_row_never_applies_to_non_member(self):
        assert self.policy.tier(_row(area="ASEAN"), "CN") is None

    def test_null_and_sentinel_origin_are_rest_of_world(self):
        assert self.policy.tier(_row(origin=None), "CN") == RateTier.REST_OF_WORLD
        assert self.policy.tier(_row(origin="ERGA_OMNES"), "CN") == RateTier.REST_OF_WORLD

    def test_other_origin_is_absent(self):
        assert self.policy.tier(_row(origin="US"), "CN") is None


class TestResolve:
    def setup_method(self):
        self.policy = RateResolutionPolicy("ERGA_OMNES", BLOCS)

    def test_specific_beats_bloc_beats_generic(self):
        generic = _row(origin="ERGA_OMNES", duty="8")
        bloc = _row(area="ASEAN", duty="4")
        specific = _row(origin="VN", duty="2")
        assert self.policy.resolve([generic, bloc, specific], "VN") is specific
        assert self.policy.resolve([generic, bloc], "VN") is bloc
        assert self.policy.resolve([generic], "VN") is generic

    def test_falls_back_to_generic_when_no_specific_row(self):
        generic = _row(origin=None)
        other = _row(origin="US", duty="0")
        assert self.policy.resolve([other, generic], "CN") is generic

    def test_nothing_applicable(self):
        assert self.policy.resolve([_row(origin="US")], "CN") is None

    def test_tie_prefers_conservative_row(self):
        low = _row(origin="CN", ad="0")
        high = _row(origin="CN", ad="17.5")
        assert self.policy.resolve([low, high], "CN") is high

    def test_best_per_code(self):
        rows = [
            _row(code="6403990000", origin=None, duty="8"),
            _row(code="6403990000", origin="CN", duty="12"),
            _row(code="6403910000", origin=None, duty="5"),
            _row(code="6403190000", origin="US", duty="1"),
        ]
        resolved = self.policy.best_per_code(rows, "CN")
        assert set(resolved) == {"6403990000", "6403910000"}
        assert resolved["6403990000"].duty == Decimal("12")

    def test_blocs_for(self):
        assert self.policy.blocs_for("NO") == ("EFTA",)
        assert self.policy.blocs_for("CN") == ()


class TestTariffRow:
    def test_missing_rates_count_as_zero(self):
        row = TariffRow("1", None, None, None, None, None, None, None, None, None, None)
        assert row.duty == 0
        assert row.anti_dumping == 0
        assert row.tariff_burden == 0

    def test_tariff_burden(self):
        assert _row(duty="8", ad="10").tariff_burden == Decimal("18")
