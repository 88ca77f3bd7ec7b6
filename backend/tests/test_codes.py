"""Tests for classification code normalization."""

import pytest

from app.exceptions import InvalidInputError
from app.tariff_repository.codes import hs_prefix, normalize_hs_code, validate_hs_code


class TestNormalizeHsCode:
    def test_strips_punctuation_and_pads(self):
        assert normalize_hs_code("8471.30") == "8471300000"

    def test_truncates_long_codes(self):
        assert normalize_hs_code("847130001234") == "8471300012"

    def test_exact_length_unchanged(self):
        assert normalize_hs_code("6403999300") == "6403999300"

    def test_empty_and_none_become_zeros(self):
        assert normalize_hs_code("") == "0000000000"
        assert normalize_hs_code(None) == "0000000000"

    @pytest.mark.parametrize("raw", ["8471", "84 71 30 00", "HS-6403.99.93", "x", "12345678901234"])
    def test_idempotent_and_ten_digits(self, raw):
        once = normalize_hs_code(raw)
        assert normalize_hs_code(once) == once
        assert len(once) == 10
        assert once.isdigit()


class TestValidateHsCode:
    def test_returns_normalized(self):
        assert validate_hs_code("6403.99") == "6403990000"

    def test_rejects_code_without_digits(self):
        with pytest.raises(InvalidInputError) as exc:
            validate_hs_code("abc", "customer_hs_code")
        assert exc.value.field == "customer_hs_code"
        assert "customer_hs_code" in str(exc.value)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidInputError):
            validate_hs_code(8471300000)


class TestHsPrefix:
    def test_prefix_of_normalized_code(self):
        assert hs_prefix("8471.30.00.99", 8) == "84713000"
        assert hs_prefix("8471.30", 6) == "847130"
