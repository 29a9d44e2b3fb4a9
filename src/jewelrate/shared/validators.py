# src/jewelrate/shared/validators.py
"""
Input Validation Utilities - Numeric and Format Validation

This module provides validation helpers shared by the pricing, inventory
and settings layers. Numeric helpers convert loosely-typed request values
into Decimal and raise a typed error for garbage instead of silently
treating it as zero.

Files that USE this module:
- jewelrate.application.pricing (to_decimal for price inputs)
- jewelrate.application.inventory_service (purity and weight checks)
- jewelrate.config.settings (validate_api_key for gateway credentials)

Files that this module USES:
- jewelrate.domain.errors (InvalidNumericInput)
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from jewelrate.domain.errors import InvalidNumericInput

_TWO_DP = re.compile(r"^\d+(\.\d{1,2})?$")

# Largest absolute value accepted for a request number
MAX_NUMERIC_MAGNITUDE = Decimal("1e12")


def to_decimal(value: Any, field: str, default: Optional[Decimal] = Decimal("0"),
               max_magnitude: Decimal = MAX_NUMERIC_MAGNITUDE) -> Decimal:
    """
    Convert a request value to Decimal.

    Missing values (None or blank strings) become `default`. Booleans,
    non-numeric text, NaN and infinities raise InvalidNumericInput.
    So do values whose absolute size exceeds `max_magnitude`.

    Args:
        value: Raw value (str, int, float, Decimal or None)
        field: Field name reported in the error
        default: Value used for missing input; None makes the field required
        max_magnitude: Largest absolute value accepted

    Returns:
        Decimal value

    Raises:
        InvalidNumericInput: If the value is present but not a finite number
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidNumericInput(field, value)
        return default
    if isinstance(value, bool):
        raise InvalidNumericInput(field, value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps floats like 91.6 from expanding to binary noise
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidNumericInput(field, value) from None
    if not result.is_finite():
        raise InvalidNumericInput(field, value)
    if abs(result) > max_magnitude:
        raise InvalidNumericInput(field, value)
    return result


def has_max_two_decimals(value: Decimal) -> bool:
    """True when a non-negative number has at most 2 decimal places."""
    return bool(_TWO_DP.match(format(value.normalize(), "f")))


def validate_purity(purity: Decimal, hallmarked: bool) -> Optional[str]:
    """
    Check purity rules for an inventory item.

    Returns:
        Error message, or None when the value is acceptable
    """
    if hallmarked:
        return None
    if purity < 0 or purity > Decimal("999.99") or not has_max_two_decimals(purity):
        return "Purity must have maximum 2 decimal places and be between 0-999.99"
    return None


def validate_api_key(api_key: str, min_length: int = 8) -> bool:
    """
    Validate API key format.

    Args:
        api_key: API key to validate
        min_length: Minimum length requirement

    Returns:
        True if valid, False otherwise
    """
    if not api_key:
        return False

    return len(api_key) >= min_length and not api_key.isspace()


def sanitize_text(text: Optional[str], max_length: int = 255) -> str:
    """Trim free text and cap its length."""
    if not text:
        return ""
    return str(text).strip()[:max_length]
