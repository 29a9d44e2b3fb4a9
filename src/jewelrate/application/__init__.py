# src/jewelrate/application/__init__.py
"""
Application Layer - Use Cases and Services

This package contains the services that orchestrate domain logic:
rate caching, pricing, valuation, orders, payments and inventory.
Adapters (feed, gateway, database) are passed in at construction.
"""

from jewelrate.application.health import HealthChecker, HealthStatus
from jewelrate.application.inventory_service import InventoryService
from jewelrate.application.metal_rates_service import MetalRatesService
from jewelrate.application.order_service import OrderStockController
from jewelrate.application.payment_service import PaymentService, PaymentVerifier, sign
from jewelrate.application.pricing import calculate_from_payload, compute_price, round2
from jewelrate.application.rate_cache import TROY_OUNCE_GRAMS, RateCache
from jewelrate.application.valuation import InventoryValuation, resolve_rate

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "InventoryService",
    "InventoryValuation",
    "MetalRatesService",
    "OrderStockController",
    "PaymentService",
    "PaymentVerifier",
    "RateCache",
    "TROY_OUNCE_GRAMS",
    "calculate_from_payload",
    "compute_price",
    "resolve_rate",
    "round2",
    "sign",
]
