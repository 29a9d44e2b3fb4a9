# src/jewelrate/application/metal_rates_service.py
"""
Metal Rates Service - Operator-Maintained Rate Table

The stored rates are the fallback when the live feed fails and the only
source for metals the feed does not cover (platinum). Changing one is a
superadmin action and is audit-logged in the same transaction.

Files that USE this module:
- jewelrate.adapters.http.routes (admin metal price endpoints)
- tests.test_metal_rates_service (unit tests)

Files that this module USES:
- jewelrate.adapters.persistence.store (metal_prices and audit_logs)
- jewelrate.domain.roles (MANAGE_METAL_RATES)
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List

from jewelrate.domain.errors import MetalNotFound, ValidationError
from jewelrate.domain.models import StoredMetalRate
from jewelrate.domain.roles import Capability, Principal, require
from jewelrate.shared.validators import to_decimal

logger = logging.getLogger(__name__)

AUDIT_ACTION_UPDATE = "UPDATE_METAL_PRICE"


class MetalRatesService:
    def __init__(self, store):
        self.store = store

    def list_rates(self, principal: Principal) -> List[StoredMetalRate]:
        require(principal, Capability.MANAGE_METAL_RATES)
        return self.store.list_metal_rates()

    def update_rate(self, principal: Principal, metal: str, price_per_gram: Any) -> StoredMetalRate:
        """
        Change the stored rate of a metal.

        Args:
            principal: Caller (needs MANAGE_METAL_RATES)
            metal: Metal name, case-insensitive
            price_per_gram: New positive rate

        Returns:
            The updated StoredMetalRate

        Raises:
            AuthorizationError: Caller may not change rates
            ValidationError: Missing or non-positive price
            MetalNotFound: No stored rate exists for the metal
        """
        require(principal, Capability.MANAGE_METAL_RATES)
        metal = (metal or "").strip().lower()
        price = to_decimal(price_per_gram, "pricePerGram", default=None)
        if price <= 0:
            raise ValidationError("Valid price per gram is required")

        with self.store.transaction() as conn:
            current = self.store.get_metal_rate(metal, conn=conn)
            if current is None or not self.store.set_metal_rate(conn, metal, price, principal.user_id):
                raise MetalNotFound(f"Metal '{metal}' not found")
            self.store.add_audit_log(
                conn,
                admin_id=principal.user_id,
                action=AUDIT_ACTION_UPDATE,
                target_type="metal_price",
                target_id=metal,
                details={"metal": metal, "from": str(current.price_per_gram), "to": str(price)},
            )

        logger.info("Metal rate %s changed %s -> %s by user=%s",
                    metal, current.price_per_gram, price, principal.user_id)
        return self.store.get_metal_rate(metal) or StoredMetalRate(metal, price, updated_by=principal.user_id)
