# tests/test_validators.py
"""
Validator Tests - Numeric Parsing and Purity Rules

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- jewelrate.shared.validators (to_decimal, has_max_two_decimals, validate_purity, validate_api_key)
"""
from decimal import Decimal

import pytest

from jewelrate.domain.errors import InvalidNumericInput
from jewelrate.shared.validators import (
    MAX_NUMERIC_MAGNITUDE,
    has_max_two_decimals,
    to_decimal,
    validate_api_key,
    validate_purity,
)


class TestValidators:
    @pytest.mark.parametrize("raw,expected", [
        ("91.6", Decimal("91.6")),
        (91.6, Decimal("91.6")),
        (10, Decimal("10")),
        ("  ", Decimal("0")),
        (None, Decimal("0")),
    ])
    def test_to_decimal(self, raw, expected):
        assert to_decimal(raw, "field") == expected

    @pytest.mark.parametrize("raw", ["abc", "Infinity", True, "1,000"])
    def test_to_decimal_rejects_garbage(self, raw):
        with pytest.raises(InvalidNumericInput) as exc_info:
            to_decimal(raw, "netWeight")
        assert exc_info.value.field == "netWeight"

    def test_required_value(self):
        with pytest.raises(InvalidNumericInput):
            to_decimal(None, "pricePerGram", default=None)

    def test_two_decimals(self):
        assert has_max_two_decimals(Decimal("91.60"))
        assert has_max_two_decimals(Decimal("999"))
        assert not has_max_two_decimals(Decimal("91.666"))

    def test_purity_bounds(self):
        assert validate_purity(Decimal("999.99"), False) is None
        assert validate_purity(Decimal("1000"), False) is not None
        assert validate_purity(Decimal("-1"), False) is not None
        assert validate_purity(Decimal("1000"), True) is None

    @pytest.mark.parametrize("raw", ["1e30", "-1e13", Decimal("1000000000000.01")])
    def test_oversized_values_rejected(self, raw):
        with pytest.raises(InvalidNumericInput):
            to_decimal(raw, "netWeight")

    def test_bound_is_inclusive(self):
        assert to_decimal(str(MAX_NUMERIC_MAGNITUDE), "metalPrice") == MAX_NUMERIC_MAGNITUDE
        assert to_decimal("-1e12", "extraValue") == Decimal("-1e12")

    def test_custom_bound(self):
        with pytest.raises(InvalidNumericInput):
            to_decimal("101", "purity", max_magnitude=Decimal("100"))

    def test_api_key(self):
        assert validate_api_key("rzp_test_key")
        assert not validate_api_key("short")
        assert not validate_api_key("        ")
