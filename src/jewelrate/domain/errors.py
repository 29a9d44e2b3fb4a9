# src/jewelrate/domain/errors.py
"""
Domain Errors - Business Logic Exceptions

This module defines domain-specific exceptions that represent
business rule violations and domain errors.
"""
from typing import Iterable, List, Optional

from jewelrate.domain.models import StockShortage


class DomainError(Exception):
    """Base exception for domain errors."""
    pass


class UpstreamError(DomainError):
    """Raised when the live rate feed cannot provide usable data."""
    pass


class UpstreamTimeout(UpstreamError):
    """Raised when the rate feed does not answer within the timeout."""
    pass


class UpstreamUnavailable(UpstreamError):
    """Raised on connection errors or a non-success HTTP status."""
    pass


class MalformedUpstreamData(UpstreamError):
    """Raised when the rate feed answers with unparseable or incomplete data."""
    pass


class ValidationError(DomainError):
    """Raised when input violates a business rule."""
    pass


class InvalidNumericInput(ValidationError):
    """Raised when a numeric field holds a non-numeric value."""

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid numeric value for '{field}': {value!r}")


class InsufficientStock(DomainError):
    """Raised when one or more order lines exceed available stock."""

    def __init__(self, shortages: Iterable[StockShortage]):
        self.shortages: List[StockShortage] = list(shortages)
        parts = [
            f"product {s.product_id} (requested {s.requested}, available {s.available})"
            for s in self.shortages
        ]
        super().__init__("Insufficient stock for " + ", ".join(parts))


class InvalidSignature(DomainError):
    """Raised when a payment callback signature does not match."""
    pass


class StockCommitRace(DomainError):
    """Raised when the guarded stock decrement affects no rows."""

    def __init__(self, order_id: int, product_id: int, quantity: int):
        self.order_id = order_id
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            f"Stock commit failed for order {order_id}: product {product_id} qty={quantity}"
        )


class AuthenticationError(DomainError):
    """Raised when a request carries no usable caller identity."""
    pass


class AuthorizationError(DomainError):
    """Raised when a principal lacks the capability for an operation."""
    pass


class NotFoundError(DomainError):
    """Raised when a requested record does not exist."""
    pass


class OrderNotFound(NotFoundError):
    pass


class ProductNotFound(NotFoundError):
    pass


class InventoryItemNotFound(NotFoundError):
    pass


class MetalNotFound(NotFoundError):
    pass


class PaymentNotFound(NotFoundError):
    pass


class OrderStateError(DomainError):
    """Raised when an order transition is not allowed from its current state."""
    pass


class PaymentGatewayNotConfigured(DomainError):
    """Raised when a payment operation runs without gateway credentials."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Payment gateway not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
        )


class PaymentGatewayError(DomainError):
    """Raised when the payment gateway rejects or fails a request."""
    pass
