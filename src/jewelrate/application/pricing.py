# src/jewelrate/application/pricing.py
"""
Pricing - Deterministic Jewelry Valuation Formula

Pure functions from (rate per gram, item attributes) to a money breakdown.
No I/O and no hidden state: the same inputs always give the same result,
which is what lets a quote shown to a buyer be reproduced at checkout.

  metal value    = purity / 100 * net weight * rate
  wastage        = metal value * wastage percent / 100
  making charge  = net weight * making charge per gram
  total          = round2(metal value + wastage + making charge + extra value)

Rounding (half-up, 2 places) is applied once to the total; components are
rounded separately for display only.

Files that USE this module:
- jewelrate.application.valuation (prices stored inventory records)
- jewelrate.adapters.http.routes (POST /inventory/calculate)
- tests.test_pricing (unit tests)

Files that this module USES:
- jewelrate.shared.validators (to_decimal for request payloads)
- jewelrate.domain.models (PriceBreakdown)
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Protocol

from jewelrate.domain.errors import ValidationError
from jewelrate.domain.models import ZERO, PriceBreakdown
from jewelrate.shared.validators import to_decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class Priceable(Protocol):
    """Attributes the formula reads; InventoryItem satisfies it."""
    purity: Decimal
    net_weight: Decimal
    wastage_percent: Decimal
    making_charge_per_gram: Decimal
    extra_value: Decimal


@dataclass(frozen=True)
class PricingInput:
    purity: Decimal
    net_weight: Decimal
    wastage_percent: Decimal = ZERO
    making_charge_per_gram: Decimal = ZERO
    extra_value: Decimal = ZERO
    hallmarked: bool = False


def round2(value: Decimal) -> Decimal:
    """Round a money amount to 2 decimal places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _d(value: Optional[Decimal]) -> Decimal:
    return ZERO if value is None else value


def compute_price(rate: Decimal, item: Priceable) -> PriceBreakdown:
    """
    Compute the price breakdown of one item at a given rate.

    Args:
        rate: Metal price per gram
        item: Item attributes (purity in percent, weights in grams)

    Returns:
        PriceBreakdown with display-rounded components and a total rounded once

    Raises:
        ValidationError: If the inputs produce an amount too large to round to cents
    """
    rate = _d(rate)
    net_weight = _d(item.net_weight)

    metal_value = _d(item.purity) / HUNDRED * net_weight * rate
    wastage_amount = metal_value * _d(item.wastage_percent) / HUNDRED
    making_charge = net_weight * _d(item.making_charge_per_gram)
    extra_value = _d(item.extra_value)

    total = metal_value + wastage_amount + making_charge + extra_value

    try:
        return PriceBreakdown(
            metal_value=round2(metal_value),
            wastage_amount=round2(wastage_amount),
            making_charge=round2(making_charge),
            extra_value=round2(extra_value),
            total_price=round2(total),
            rate=rate,
        )
    except InvalidOperation:
        raise ValidationError("Price inputs are too large to compute") from None


def pricing_input_from_payload(payload: Mapping[str, Any]) -> PricingInput:
    """
    Build a PricingInput from a camelCase request body.

    Missing fields count as zero; malformed ones raise InvalidNumericInput.
    """
    return PricingInput(
        purity=to_decimal(payload.get("purity"), "purity"),
        net_weight=to_decimal(payload.get("netWeight"), "netWeight"),
        wastage_percent=to_decimal(payload.get("wastagePercent"), "wastagePercent"),
        making_charge_per_gram=to_decimal(payload.get("makingChargePerGram"), "makingChargePerGram"),
        extra_value=to_decimal(payload.get("extraValue"), "extraValue"),
        hallmarked=bool(payload.get("hallmarked", False)),
    )


def calculate_from_payload(payload: Mapping[str, Any]) -> PriceBreakdown:
    """Price an ad-hoc item described by a calculator request body."""
    rate = to_decimal(payload.get("metalPrice"), "metalPrice")
    return compute_price(rate, pricing_input_from_payload(payload))
