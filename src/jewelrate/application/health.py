# src/jewelrate/application/health.py
"""
Health Checker - Service Monitoring and Diagnostics

Reports whether the database answers, whether the live rate feed is
currently serving (or the service runs on stored rates), and whether the
payment gateway is configured.

Files that USE this module:
- jewelrate.adapters.http.routes (GET /api/health)
- tests.test_http_api (health endpoint)

Files that this module USES:
- jewelrate.adapters.persistence.database (check_database_connection)
- jewelrate.application.rate_cache (live entries)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jewelrate.adapters.persistence.database import check_database_connection
from jewelrate.domain.models import RateOrigin

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Represents the health status of a component."""
    is_healthy: bool
    message: str
    last_check: datetime
    details: Optional[Dict[str, Any]] = None


class HealthChecker:
    """Health checks for the database, the rate feed and the payment gateway."""

    def __init__(self, store, rate_cache, gateway_configured: bool):
        self.store = store
        self.rate_cache = rate_cache
        self.gateway_configured = gateway_configured

    def check_database(self) -> HealthStatus:
        try:
            check_database_connection(self.store.engine)
        except RuntimeError as e:
            logger.error("Database health check failed: %s", e)
            return HealthStatus(False, str(e), datetime.now(timezone.utc))
        return HealthStatus(True, "Database reachable", datetime.now(timezone.utc))

    def check_rates(self) -> HealthStatus:
        """Rates are healthy when every metal has a positive rate, live or stored."""
        try:
            entries = self.rate_cache.get_entries(self.store)
        except Exception as e:
            logger.error("Rate health check failed: %s", e)
            return HealthStatus(False, f"Rate error: {e}", datetime.now(timezone.utc))

        live = sorted(m for m, e in entries.items() if e.source is RateOrigin.LIVE)
        stored = sorted(m for m, e in entries.items() if e.source is RateOrigin.STORED)
        if not entries:
            message = "No metal rates available"
        elif live:
            message = f"Live rates for {', '.join(live)}"
        else:
            message = "Live feed unavailable, serving stored rates"
        return HealthStatus(
            is_healthy=bool(entries),
            message=message,
            last_check=datetime.now(timezone.utc),
            details={"live": live, "stored": stored},
        )

    def check_payment_gateway(self) -> HealthStatus:
        return HealthStatus(
            is_healthy=self.gateway_configured,
            message="Payment gateway configured" if self.gateway_configured
            else "Payment gateway not configured (online payments disabled)",
            last_check=datetime.now(timezone.utc),
        )

    def check_all(self) -> Dict[str, HealthStatus]:
        return {
            "database": self.check_database(),
            "rates": self.check_rates(),
            "payments": self.check_payment_gateway(),
        }
