# tests/test_pricing.py
"""
Pricing Tests - Valuation Formula and Rounding

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- jewelrate.application.pricing (compute_price, calculate_from_payload, round2)
"""
from decimal import Decimal

import pytest

from jewelrate.application.pricing import (
    PricingInput,
    calculate_from_payload,
    compute_price,
    pricing_input_from_payload,
    round2,
)
from jewelrate.domain.errors import InvalidNumericInput, ValidationError


def _ring(**overrides):
    fields = dict(
        purity=Decimal("91.6"),
        net_weight=Decimal("10"),
        wastage_percent=Decimal("8"),
        making_charge_per_gram=Decimal("500"),
        extra_value=Decimal("0"),
    )
    fields.update(overrides)
    return PricingInput(**fields)


class TestComputePrice:
    def test_reference_ring(self):
        b = compute_price(Decimal("6000"), _ring())

        assert b.metal_value == Decimal("54960.00")
        assert b.wastage_amount == Decimal("4396.80")
        assert b.making_charge == Decimal("5000.00")
        assert b.extra_value == Decimal("0.00")
        assert b.total_price == Decimal("64356.80")

    def test_same_inputs_same_result(self):
        assert compute_price(Decimal("6123.45"), _ring()) == compute_price(Decimal("6123.45"), _ring())

    def test_extra_value_added_to_total(self):
        b = compute_price(Decimal("6000"), _ring(extra_value=Decimal("1500.50")))
        assert b.total_price == Decimal("65857.30")

    def test_total_rounded_once_from_unrounded_components(self):
        # metal 0.333, wastage 0.333, making 0.333: parts round to 0.33 each,
        # the unrounded sum 0.999 rounds to 1.00
        item = PricingInput(
            purity=Decimal("100"),
            net_weight=Decimal("0.333"),
            wastage_percent=Decimal("100"),
            making_charge_per_gram=Decimal("1"),
        )
        b = compute_price(Decimal("1"), item)
        assert b.metal_value == Decimal("0.33")
        assert b.wastage_amount == Decimal("0.33")
        assert b.making_charge == Decimal("0.33")
        assert b.total_price == Decimal("1.00")

    def test_zero_rate_prices_only_making_and_extras(self):
        b = compute_price(Decimal("0"), _ring(extra_value=Decimal("100")))
        assert b.metal_value == Decimal("0.00")
        assert b.total_price == Decimal("5100.00")

    def test_amount_beyond_cent_precision_is_a_validation_error(self):
        item = _ring(net_weight=Decimal("1e20"))
        with pytest.raises(ValidationError, match="too large"):
            compute_price(Decimal("1e20"), item)


class TestRound2:
    @pytest.mark.parametrize("value,expected", [
        ("1.005", "1.01"),
        ("2.675", "2.68"),
        ("1.004", "1.00"),
        ("10", "10.00"),
    ])
    def test_half_up(self, value, expected):
        assert round2(Decimal(value)) == Decimal(expected)


class TestPayloads:
    def test_calculator_payload(self):
        b = calculate_from_payload({
            "metalPrice": "6000",
            "purity": 91.6,
            "netWeight": 10,
            "wastagePercent": 8,
            "makingChargePerGram": 500,
        })
        assert b.total_price == Decimal("64356.80")

    def test_missing_fields_count_as_zero(self):
        item = pricing_input_from_payload({"purity": "91.6", "netWeight": "10"})
        assert item.wastage_percent == Decimal("0")
        assert item.making_charge_per_gram == Decimal("0")
        assert item.extra_value == Decimal("0")

    def test_malformed_number_rejected(self):
        with pytest.raises(InvalidNumericInput) as exc_info:
            calculate_from_payload({"metalPrice": "6000", "purity": "abc", "netWeight": 10})
        assert exc_info.value.field == "purity"

    def test_nan_rejected(self):
        with pytest.raises(InvalidNumericInput):
            calculate_from_payload({"metalPrice": "NaN", "purity": 91.6, "netWeight": 10})

    def test_oversized_number_rejected(self):
        with pytest.raises(InvalidNumericInput) as exc_info:
            calculate_from_payload({"metalPrice": "6000", "purity": "100", "netWeight": "1e30"})
        assert exc_info.value.field == "netWeight"

    def test_largest_accepted_numbers_still_price(self):
        b = calculate_from_payload({"metalPrice": "1e12", "purity": "100", "netWeight": "1e12"})
        assert b.total_price == Decimal("1e24").quantize(Decimal("0.01"))
