# src/jewelrate/app.py
"""
Application Entry Point - Service Wiring and HTTP Server Startup

This module is the composition root of the jewelrate API. It builds the
database store, the live rate cache, the payment gateway client and the
application services, then mounts the HTTP routes.

Files that USE this module:
- python -m jewelrate (module entry point)
- jewelrate console script (pyproject.toml)
- tests.test_http_api (create_app with injected store and provider)

Files that this module USES:
- jewelrate.shared.logging_conf (setup_logging for logging configuration)
- jewelrate.config (settings for configuration management)
- jewelrate.adapters.persistence (engine and store)
- jewelrate.adapters.providers (live spot feed)
- jewelrate.adapters.payments (gateway client)
- jewelrate.adapters.http (routes and error envelope)
- jewelrate.application (services)
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from decimal import Decimal
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jewelrate import __version__
from jewelrate.adapters.http.deps import Services
from jewelrate.adapters.http.errors import install_error_handlers
from jewelrate.adapters.http.routes import router
from jewelrate.adapters.payments import RazorpayClient
from jewelrate.adapters.persistence import Store, create_db_engine
from jewelrate.adapters.providers import GoldPriceProvider
from jewelrate.application import (
    HealthChecker,
    InventoryService,
    InventoryValuation,
    MetalRatesService,
    OrderStockController,
    PaymentService,
    PaymentVerifier,
    RateCache,
)
from jewelrate.config import Settings
from jewelrate.shared.logging_conf import setup_logging

logger = logging.getLogger(__name__)

# Stored rates written on first start so every metal has a fallback
DEFAULT_METAL_RATES = {
    "gold": Decimal("14043"),
    "silver": Decimal("250"),
    "platinum": Decimal("6340"),
}


def build_services(app_settings: Settings, store: Optional[Store] = None,
                   rate_cache: Optional[RateCache] = None,
                   gateway_client=None) -> Services:
    """
    Wire the application services.

    Args:
        app_settings: Loaded settings
        store: Optional pre-built store (tests)
        rate_cache: Optional pre-built rate cache (tests)
        gateway_client: Optional gateway client (tests); built from settings otherwise

    Returns:
        Services container for the HTTP layer
    """
    if store is None:
        store = Store(create_db_engine(app_settings.database_url))
    seeded = store.seed_metal_rates(DEFAULT_METAL_RATES)
    if seeded:
        logger.info("Seeded %d default metal rate(s)", seeded)

    if rate_cache is None:
        provider = GoldPriceProvider(app_settings.rate_feed_url, app_settings.http_timeout_seconds)
        rate_cache = RateCache(
            provider,
            ttl=timedelta(minutes=app_settings.rate_cache_minutes),
            calibration=app_settings.calibration,
        )

    gateway_config = app_settings.payment_gateway
    if gateway_config is None:
        logger.warning("Payment gateway not configured; online payments are disabled")
    elif gateway_client is None:
        gateway_client = RazorpayClient(gateway_config)

    valuation = InventoryValuation(store, rate_cache)
    orders = OrderStockController(store, rate_cache, valuation)
    return Services(
        store=store,
        rate_cache=rate_cache,
        valuation=valuation,
        orders=orders,
        inventory=InventoryService(store, valuation, app_settings.weight_policy),
        metal_rates=MetalRatesService(store),
        payments=PaymentService(store, orders, gateway_client, gateway_config),
        verifier=PaymentVerifier(store, orders, gateway_config),
        health=HealthChecker(store, rate_cache, gateway_config is not None),
    )


def create_app(app_settings: Optional[Settings] = None, store: Optional[Store] = None,
               rate_cache: Optional[RateCache] = None, gateway_client=None) -> FastAPI:
    """Create the FastAPI application with all routes and handlers."""
    if app_settings is None:
        from jewelrate.config import settings as app_settings

    app = FastAPI(title="jewelrate API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = build_services(app_settings, store, rate_cache, gateway_client)
    install_error_handlers(app)
    app.include_router(router)
    return app


def main() -> None:
    """
    Start the HTTP server.

    This function:
    1. Sets up logging from settings
    2. Wires the services and the FastAPI application
    3. Runs uvicorn on the configured host and port
    """
    from jewelrate.config import settings

    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
        stdout=settings.log_stdout,
    )
    logger.info("Working directory: %s", os.getcwd())
    logger.info(
        "Starting jewelrate %s on %s:%d (rate cache %d min, weight policy %s)",
        __version__, settings.host, settings.port, settings.rate_cache_minutes,
        settings.weight_policy.value,
    )

    try:
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
    except KeyboardInterrupt:
        logger.info("Server stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception("Unexpected error during server operation: %s (type: %s)", e, type(e).__name__)
        raise


if __name__ == "__main__":
    main()
