# src/jewelrate/application/valuation.py
"""
Inventory Valuation - Binding the Formula to Inventory Records

Resolves which rate applies to an inventory record and prices it. Every
displayed or charged price goes through price_for(); persisted totals are
never read back as authoritative, so a mid-day rate change shows up the
same way on listings, detail pages, carts and checkout.

Files that USE this module:
- jewelrate.application.order_service (unit price snapshots at checkout)
- jewelrate.application.inventory_service (live quotes for products)
- tests.test_valuation (unit tests)

Files that this module USES:
- jewelrate.application.pricing (compute_price)
- jewelrate.application.rate_cache (merged rate table)
- jewelrate.adapters.persistence.store (inventory and product records)
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping, Optional, Tuple

from jewelrate.application.pricing import compute_price, round2
from jewelrate.domain.errors import ProductNotFound
from jewelrate.domain.models import ZERO, InventoryItem, PriceBreakdown

log = logging.getLogger(__name__)


def resolve_rate(item: InventoryItem, rate_table: Mapping[str, Decimal]) -> Decimal:
    """
    Pick the per-gram rate for an item.

    Order: the table entry for the item's metal, then the rate stored on the
    item, then zero. Non-positive candidates are skipped.
    """
    table_rate = rate_table.get((item.metal or "").lower())
    if table_rate is not None and table_rate > 0:
        return table_rate
    if item.stored_metal_price is not None and item.stored_metal_price > 0:
        return item.stored_metal_price
    log.warning("No rate available for metal %r (item %s), pricing metal at zero", item.metal, item.id)
    return ZERO


class InventoryValuation:
    """Prices inventory records against the current rate table."""

    def __init__(self, store, rate_cache):
        self.store = store
        self.rate_cache = rate_cache

    @staticmethod
    def price_for(item: InventoryItem, rate_table: Mapping[str, Decimal]) -> PriceBreakdown:
        return compute_price(resolve_rate(item, rate_table), item)

    def current_rates(self) -> dict:
        return self.rate_cache.get_rates(self.store)

    def quote_product(self, product_id: int,
                      rate_table: Optional[Mapping[str, Decimal]] = None
                      ) -> Tuple[Optional[InventoryItem], Optional[PriceBreakdown]]:
        """
        Quote a product from its inventory record.

        Returns:
            (item, breakdown), or (None, None) when the product has no inventory record
        """
        item = self.store.get_inventory_by_product(product_id)
        if item is None:
            return None, None
        rates = self.current_rates() if rate_table is None else rate_table
        return item, self.price_for(item, rates)

    def unit_price(self, product_id: int, rate_table: Mapping[str, Decimal], conn=None) -> Decimal:
        """
        Price charged for one unit of a product at checkout.

        Products with an inventory record are valued live; others fall back
        to their list price.

        Raises:
            ProductNotFound: If the product does not exist
        """
        item = self.store.get_inventory_by_product(product_id, conn=conn)
        if item is not None:
            return self.price_for(item, rate_table).total_price
        product = self.store.get_product(product_id, conn=conn)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")
        return round2(product.price)
