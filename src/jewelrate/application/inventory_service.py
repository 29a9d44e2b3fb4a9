# src/jewelrate/application/inventory_service.py
"""
Inventory Service - Jewelry Inventory Records

CRUD for the inventory records that drive live pricing. Sellers manage
their own records; admins and superadmins manage any. Records are
validated on every write:

- wastage percent within [4, 15] for Normal items
- purity within 0-999.99 with at most 2 decimal places unless hallmarked
- gross weight against net + extra weight, per the configured WeightPolicy

Files that USE this module:
- jewelrate.adapters.http.routes (inventory endpoints)
- tests.test_inventory_service (unit tests)

Files that this module USES:
- jewelrate.application.valuation (live quotes)
- jewelrate.adapters.persistence.store (inventory and product records)
- jewelrate.config (WeightPolicy)
- jewelrate.shared.validators (numeric parsing and purity rules)
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from jewelrate.config import WeightPolicy
from jewelrate.domain.errors import InventoryItemNotFound, ProductNotFound, ValidationError
from jewelrate.domain.models import InventoryItem, ItemType
from jewelrate.domain.roles import Capability, Principal, require, require_owner_or
from jewelrate.shared.validators import sanitize_text, to_decimal, validate_purity

logger = logging.getLogger(__name__)

MIN_WASTAGE = Decimal("4")
MAX_WASTAGE = Decimal("15")


def _parse_product_id(raw: Any) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        raise ValidationError("productId must be an integer")
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError("productId must be an integer") from None


def item_from_payload(payload: Mapping[str, Any], seller_id: Optional[int] = None) -> InventoryItem:
    """
    Build an InventoryItem from a camelCase request body.

    Raises:
        ValidationError: Missing required fields, unknown item type or a non-integer productId
        InvalidNumericInput: Malformed numbers
    """
    metal = sanitize_text(payload.get("metal"), max_length=32).lower()
    if not metal:
        raise ValidationError("Missing required fields: metal")
    try:
        item_type = ItemType(payload.get("type") or ItemType.NORMAL.value)
    except ValueError:
        raise ValidationError(f"Unknown item type: {payload.get('type')!r}") from None

    product_id = _parse_product_id(payload.get("productId"))
    raw_price = payload.get("metalPrice")
    stored_price = None if raw_price in (None, "") else to_decimal(raw_price, "metalPrice")

    return InventoryItem(
        product_id=product_id,
        seller_id=seller_id,
        metal=metal,
        hallmarked=bool(payload.get("hallmarked", False)),
        purity=to_decimal(payload.get("purity"), "purity"),
        net_weight=to_decimal(payload.get("netWeight"), "netWeight"),
        gross_weight=to_decimal(payload.get("grossWeight"), "grossWeight"),
        extra_description=sanitize_text(payload.get("extraDescription"), max_length=1000) or None,
        extra_weight=to_decimal(payload.get("extraWeight"), "extraWeight"),
        extra_value=to_decimal(payload.get("extraValue"), "extraValue"),
        item_type=item_type,
        ornament=sanitize_text(payload.get("ornament"), max_length=64) or None,
        custom_ornament=sanitize_text(payload.get("customOrnament")) or None,
        wastage_percent=to_decimal(payload.get("wastagePercent"), "wastagePercent"),
        making_charge_per_gram=to_decimal(payload.get("makingChargePerGram"), "makingChargePerGram"),
        stored_metal_price=stored_price,
    )


def validate_item(item: InventoryItem, weight_policy: WeightPolicy = WeightPolicy.OFF) -> None:
    """
    Apply the inventory business rules.

    Raises:
        ValidationError: On the first rule the item violates
    """
    if item.net_weight <= 0 or item.gross_weight <= 0:
        raise ValidationError("Net weight and gross weight must be positive")
    if item.extra_weight < 0 or item.extra_value < 0 or item.making_charge_per_gram < 0:
        raise ValidationError("Extra weight, extra value and making charge cannot be negative")
    if item.item_type is ItemType.NORMAL and not (MIN_WASTAGE <= item.wastage_percent <= MAX_WASTAGE):
        raise ValidationError("Wastage percent must be between 4 and 15 for Normal type")
    if item.wastage_percent < 0:
        raise ValidationError("Wastage percent cannot be negative")

    purity_error = validate_purity(item.purity, item.hallmarked)
    if purity_error:
        raise ValidationError(purity_error)

    expected_gross = item.net_weight + item.extra_weight
    if weight_policy is not WeightPolicy.OFF and item.gross_weight != expected_gross:
        message = (
            f"Gross weight {item.gross_weight} does not equal net {item.net_weight} "
            f"+ extra {item.extra_weight}"
        )
        if weight_policy is WeightPolicy.ENFORCE:
            raise ValidationError(message)
        logger.warning("Inventory weight mismatch (product=%s): %s", item.product_id, message)


class InventoryService:
    """Validated, ownership-checked access to inventory records."""

    def __init__(self, store, valuation, weight_policy: WeightPolicy = WeightPolicy.OFF):
        self.store = store
        self.valuation = valuation
        self.weight_policy = WeightPolicy(weight_policy)

    def _load(self, item_id: int) -> InventoryItem:
        item = self.store.get_inventory(item_id)
        if item is None:
            raise InventoryItemNotFound(f"Inventory item {item_id} not found")
        return item

    def _check_product(self, principal: Principal, product_id: Optional[int]) -> None:
        if product_id is None:
            return
        product = self.store.get_product(product_id)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")
        if product.seller_id is not None:
            require_owner_or(principal, product.seller_id, Capability.MANAGE_ANY_INVENTORY)

    def add(self, principal: Principal, payload: Mapping[str, Any]) -> InventoryItem:
        """
        Create an inventory record owned by the caller.

        Returns:
            The stored item with its id
        """
        require(principal, Capability.MANAGE_OWN_INVENTORY)
        item = item_from_payload(payload, seller_id=principal.user_id)
        validate_item(item, self.weight_policy)
        self._check_product(principal, item.product_id)
        item.id = self.store.insert_inventory(item)
        logger.info("Inventory item %s added by user=%s (product=%s, metal=%s)",
                    item.id, principal.user_id, item.product_id, item.metal)
        return item

    def get(self, principal: Principal, item_id: int) -> InventoryItem:
        item = self._load(item_id)
        require_owner_or(principal, item.seller_id, Capability.MANAGE_ANY_INVENTORY)
        return item

    def get_by_product(self, product_id: int) -> Optional[InventoryItem]:
        # Public: product detail pages show the record
        return self.store.get_inventory_by_product(product_id)

    def update(self, principal: Principal, item_id: int, payload: Mapping[str, Any]) -> InventoryItem:
        require(principal, Capability.MANAGE_OWN_INVENTORY)
        current = self.get(principal, item_id)
        item = item_from_payload(payload, seller_id=current.seller_id)
        if item.product_id is None:
            item.product_id = current.product_id
        validate_item(item, self.weight_policy)
        if item.product_id != current.product_id:
            self._check_product(principal, item.product_id)
        if not self.store.update_inventory(item_id, item):
            raise InventoryItemNotFound(f"Inventory item {item_id} not found")
        item.id = item_id
        logger.info("Inventory item %s updated by user=%s", item_id, principal.user_id)
        return item

    def delete(self, principal: Principal, item_id: int) -> None:
        require(principal, Capability.MANAGE_OWN_INVENTORY)
        self.get(principal, item_id)
        if not self.store.delete_inventory(item_id):
            raise InventoryItemNotFound(f"Inventory item {item_id} not found")
        logger.info("Inventory item %s deleted by user=%s", item_id, principal.user_id)

    def delete_by_product(self, principal: Principal, product_id: int) -> bool:
        """
        Delete the inventory record of a product.

        Returns:
            False when the product had no record
        """
        require(principal, Capability.MANAGE_OWN_INVENTORY)
        item = self.store.get_inventory_by_product(product_id)
        if item is None:
            return False
        require_owner_or(principal, item.seller_id, Capability.MANAGE_ANY_INVENTORY)
        removed = self.store.delete_inventory_by_product(product_id)
        logger.info("Removed %d inventory record(s) for product %s", removed, product_id)
        return removed > 0

    def list_by_seller(self, principal: Principal, seller_id: int) -> List[InventoryItem]:
        require_owner_or(principal, seller_id, Capability.MANAGE_ANY_INVENTORY)
        return self.store.list_inventory_by_seller(seller_id)

    def quote_product(self, product_id: int):
        """Live price breakdown of a product, or (None, None) without a record."""
        return self.valuation.quote_product(product_id)
