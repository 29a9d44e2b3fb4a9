# src/jewelrate/domain/models.py
"""
Domain Models - Pure Business Objects

This module contains domain models representing core business concepts:
- Metal rates (live and operator-stored)
- Jewelry inventory records and their price breakdowns
- Orders, order lines and payments

Files that USE this module:
- jewelrate.application.* (all services use domain models)
- jewelrate.adapters.* (adapters create and use domain models)
- tests.* (tests use domain models for test data)

Files that this module USES:
- None (pure domain layer, no external dependencies)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from dataclasses import dataclass, field  # Decorators for creating data classes
from datetime import datetime  # Date/time utilities for timestamps
from decimal import Decimal  # Precise decimal arithmetic for money values
from enum import Enum  # Closed sets of states
from typing import List, Optional  # Type hints for lists and optional values


ZERO = Decimal("0")


class Metal(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    PLATINUM = "platinum"


class RateOrigin(str, Enum):
    LIVE = "live"
    STORED = "stored"


class ItemType(str, Enum):
    NORMAL = "Normal"
    ANTIQUE = "Antique"
    HYPER_ARTISTIC = "HyperArtistic"


class PaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COD = "cod"
    PAID = "paid"
    FAILED = "failed"


class CaptureStatus(str, Enum):
    """Lifecycle of a gateway payment record."""
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"


@dataclass(frozen=True)
class SpotPrices:
    """
    Raw spot prices from the upstream feed.

    Attributes:
        gold_per_oz: Gold price per troy ounce in the account currency
        silver_per_oz: Silver price per troy ounce in the account currency
    """
    gold_per_oz: Decimal
    silver_per_oz: Decimal


@dataclass(frozen=True)
class RateEntry:
    """The authoritative price per gram of one metal at an evaluation instant."""
    metal: str
    price_per_gram: Decimal
    source: RateOrigin
    fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class StoredMetalRate:
    """Operator-set rate row from the durable store."""
    metal: str
    price_per_gram: Decimal
    updated_at: Optional[datetime] = None
    updated_by: Optional[int] = None


@dataclass
class InventoryItem:
    """
    Jewelry inventory record attached to a product.

    Attributes:
        product_id: Product this record prices
        metal: Metal name (lower-cased when resolving rates)
        hallmarked: Whether purity is certified by a hallmark
        purity: Purity in percent (e.g. 91.6 for 22K)
        net_weight: Metal weight in grams
        extra_weight: Weight of stones/extras in grams
        extra_value: Flat value of stones/extras
        gross_weight: Total weight in grams
        item_type: Normal, Antique or HyperArtistic
        wastage_percent: Manufacturing loss surcharge in percent
        making_charge_per_gram: Labour cost per gram of net weight
        stored_metal_price: Per-gram rate captured when the item was saved
    """
    product_id: Optional[int]
    metal: str
    purity: Decimal
    net_weight: Decimal
    gross_weight: Decimal
    item_type: ItemType = ItemType.NORMAL
    wastage_percent: Decimal = ZERO
    making_charge_per_gram: Decimal = ZERO
    hallmarked: bool = False
    extra_description: Optional[str] = None
    extra_weight: Decimal = ZERO
    extra_value: Decimal = ZERO
    stored_metal_price: Optional[Decimal] = None
    ornament: Optional[str] = None
    custom_ornament: Optional[str] = None
    seller_id: Optional[int] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class PriceBreakdown:
    """
    Money breakdown of an item price.

    Components are rounded for display; total_price is rounded once from
    the unrounded sum of the components.
    """
    metal_value: Decimal
    wastage_amount: Decimal
    making_charge: Decimal
    extra_value: Decimal
    total_price: Decimal
    rate: Decimal = ZERO


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: Decimal
    stock: int
    seller_id: Optional[int] = None


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int
    unit_price_snapshot: Decimal = ZERO


@dataclass
class Order:
    user_id: int
    items: List[OrderLine]
    total: Decimal
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    address: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def stock_committed(self) -> bool:
        """Whether stock has been decremented for this order."""
        return self.payment_status in (PaymentStatus.COD, PaymentStatus.PAID)


@dataclass
class Payment:
    order_id: Optional[int]
    external_order_id: str
    amount: Decimal
    currency: str
    status: CaptureStatus = CaptureStatus.CREATED
    external_payment_id: Optional[str] = None
    external_signature: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class StockShortage:
    """One order line that cannot be satisfied from current stock."""
    product_id: int
    requested: int
    available: int


@dataclass(frozen=True)
class ReconciliationIssue:
    """Captured payment that could not be fully applied (a line short of stock, or no order)."""
    order_id: int
    product_id: Optional[int]
    quantity: int
    reason: str
    created_at: Optional[datetime] = None
    resolved: bool = False
    id: Optional[int] = None


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of a payment callback verification.

    Attributes:
        verified: True when the signature matched
        order_id: Order the payment belongs to, if known
        already_captured: True when the callback replayed a captured payment
        anomalies: Order lines whose stock commit failed after capture
    """
    verified: bool
    order_id: Optional[int] = None
    already_captured: bool = False
    anomalies: List[StockShortage] = field(default_factory=list)
