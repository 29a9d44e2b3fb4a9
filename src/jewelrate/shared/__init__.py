# src/jewelrate/shared/__init__.py
"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation
- Logging configuration
"""

from jewelrate.shared.validators import (
    has_max_two_decimals,
    sanitize_text,
    to_decimal,
    validate_api_key,
    validate_purity,
)
from jewelrate.shared.logging_conf import setup_logging

__all__ = [
    "has_max_two_decimals",
    "sanitize_text",
    "to_decimal",
    "validate_api_key",
    "validate_purity",
    "setup_logging",
]
