# src/jewelrate/domain/__init__.py
"""
Domain Layer - Pure Business Objects

This package contains domain models, errors and authorization rules.
No dependencies on infrastructure or external systems.
"""

from jewelrate.domain.models import (
    CaptureStatus,
    InventoryItem,
    ItemType,
    Metal,
    Order,
    OrderLine,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PriceBreakdown,
    Product,
    RateEntry,
    RateOrigin,
    SpotPrices,
    StockShortage,
    VerificationResult,
)
from jewelrate.domain.errors import (
    DomainError,
    InsufficientStock,
    InvalidSignature,
    MalformedUpstreamData,
    StockCommitRace,
    UpstreamError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from jewelrate.domain.roles import Capability, Principal, Role

__all__ = [
    "CaptureStatus",
    "InventoryItem",
    "ItemType",
    "Metal",
    "Order",
    "OrderLine",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PriceBreakdown",
    "Product",
    "RateEntry",
    "RateOrigin",
    "SpotPrices",
    "StockShortage",
    "VerificationResult",
    "DomainError",
    "InsufficientStock",
    "InvalidSignature",
    "MalformedUpstreamData",
    "StockCommitRace",
    "UpstreamError",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "Capability",
    "Principal",
    "Role",
]
