# src/jewelrate/application/payment_service.py
"""
Payment Service - Gateway Orders and Callback Verification

Two collaborators:

- PaymentService creates the gateway order for an online order and
  reports payment status.
- PaymentVerifier checks the HMAC-SHA256 signature the gateway returns
  to the browser and, when it matches, applies the payment in a single
  transaction: capture -> order paid -> stock committed.

Verification is idempotent. A callback replayed for an already captured
payment reports success without touching stock again. A forged callback
marks an open payment failed but never downgrades a captured one, and
never changes order or stock state.

If a stock line cannot be committed after the money was captured, the
order stays paid and the line is written to the reconciliation queue
for an operator.

Files that USE this module:
- jewelrate.adapters.http.routes (payments endpoints)
- jewelrate.app (wiring)
- tests.test_payment_service (unit tests)

Files that this module USES:
- jewelrate.application.order_service (get_order, commit_stock)
- jewelrate.adapters.persistence.store (payments, orders, reconciliation queue)
- jewelrate.adapters.payments.razorpay (gateway order creation)
- jewelrate.config (PaymentGatewayConfig)
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional

from jewelrate.config import PaymentGatewayConfig
from jewelrate.domain.errors import (
    InvalidSignature,
    OrderStateError,
    PaymentGatewayNotConfigured,
    PaymentNotFound,
    StockCommitRace,
    ValidationError,
)
from jewelrate.domain.models import (
    Payment,
    PaymentMethod,
    PaymentStatus,
    ReconciliationIssue,
    StockShortage,
    VerificationResult,
)
from jewelrate.domain.roles import Principal

logger = logging.getLogger(__name__)

REASON_STOCK_SHORT = "stock commit failed after payment capture"
REASON_ORDER_MISSING = "order missing for captured payment"


def sign(secret: str, external_order_id: str, external_payment_id: str) -> str:
    """
    Compute the gateway callback signature.

    Args:
        secret: Gateway key secret
        external_order_id: Gateway order id
        external_payment_id: Gateway payment id

    Returns:
        Lowercase hex HMAC-SHA256 of "order_id|payment_id"
    """
    message = f"{external_order_id}|{external_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentVerifier:
    """Verifies gateway callbacks and applies captured payments exactly once."""

    def __init__(self, store, order_controller, gateway_config: Optional[PaymentGatewayConfig]):
        self.store = store
        self.order_controller = order_controller
        self.gateway_config = gateway_config

    def _config(self) -> PaymentGatewayConfig:
        if self.gateway_config is None:
            raise PaymentGatewayNotConfigured()
        return self.gateway_config

    def signature_matches(self, external_order_id: str, external_payment_id: str, signature: str) -> bool:
        expected = sign(self._config().key_secret, external_order_id, external_payment_id)
        return hmac.compare_digest(expected, (signature or "").strip().lower())

    def verify(
        self,
        external_order_id: str,
        external_payment_id: str,
        signature: str,
        order_id: Optional[int] = None,
    ) -> VerificationResult:
        """
        Verify a payment callback and apply it.

        Args:
            external_order_id: Gateway order id
            external_payment_id: Gateway payment id
            signature: Signature supplied by the client
            order_id: Local order id, used when the payment row has none

        Returns:
            VerificationResult (verified False on signature mismatch)

        Raises:
            PaymentGatewayNotConfigured: Gateway credentials are missing
            ValidationError: Missing callback fields or order mismatch
            PaymentNotFound: No payment exists for the gateway order
        """
        self._config()
        if not (external_order_id and external_payment_id and signature):
            raise ValidationError("Missing payment verification data")

        if not self.signature_matches(external_order_id, external_payment_id, signature):
            downgraded = self.store.fail_payment(external_order_id)
            logger.warning(
                "Payment signature mismatch for gateway order %s (payment marked failed: %s)",
                external_order_id, downgraded,
            )
            return VerificationResult(verified=False, order_id=order_id)

        payment = self.store.get_payment_by_external_order(external_order_id)
        if payment is None:
            raise PaymentNotFound(f"No payment for gateway order {external_order_id}")
        if payment.order_id is not None and order_id is not None and payment.order_id != order_id:
            raise ValidationError("Payment does not belong to this order")
        target_order_id = payment.order_id if payment.order_id is not None else order_id

        anomalies: List[StockShortage] = []
        with self.store.transaction() as conn:
            captured = self.store.capture_payment(
                conn, external_order_id, external_payment_id, signature.strip().lower(),
                order_id=target_order_id if payment.order_id is None else None,
            )
            if captured and target_order_id is not None:
                anomalies = self._apply_to_order(conn, target_order_id, external_payment_id)

        if not captured:
            stored = self.store.get_payment_by_external_order(external_order_id)
            if stored is not None and stored.external_payment_id != external_payment_id:
                logger.error(
                    "Gateway order %s already captured with payment %s; ignoring payment %s",
                    external_order_id, stored.external_payment_id, external_payment_id,
                )
            else:
                logger.info("Replayed verification for gateway order %s", external_order_id)
            return VerificationResult(verified=True, order_id=target_order_id, already_captured=True)

        logger.info(
            "Payment %s captured for order %s (anomalies: %d)",
            external_payment_id, target_order_id, len(anomalies),
        )
        return VerificationResult(verified=True, order_id=target_order_id, anomalies=anomalies)

    def _apply_to_order(self, conn, order_id: int, external_payment_id: str) -> List[StockShortage]:
        order = self.store.get_order(order_id, conn=conn)
        if order is None:
            logger.warning("Captured payment %s references missing order %s", external_payment_id, order_id)
            self.store.add_reconciliation_issue(
                conn, ReconciliationIssue(order_id=order_id, product_id=None, quantity=0,
                                          reason=REASON_ORDER_MISSING),
            )
            return []

        if not self.store.mark_order_paid(conn, order_id, external_payment_id):
            # Paid through another payment, or a COD order whose stock is already committed
            logger.warning("Order %s not in a payable state (%s); stock left unchanged",
                           order_id, order.payment_status.value)
            return []

        failed = self.order_controller.commit_stock(conn, order)
        for shortage in failed:
            logger.warning("%s; queued for reconciliation",
                           StockCommitRace(order_id, shortage.product_id, shortage.requested))
            self.store.add_reconciliation_issue(
                conn, ReconciliationIssue(order_id=order_id, product_id=shortage.product_id,
                                          quantity=shortage.requested, reason=REASON_STOCK_SHORT),
            )
        return failed

    def verify_or_raise(self, external_order_id: str, external_payment_id: str,
                        signature: str, order_id: Optional[int] = None) -> VerificationResult:
        result = self.verify(external_order_id, external_payment_id, signature, order_id=order_id)
        if not result.verified:
            raise InvalidSignature("Payment verification failed")
        return result


class PaymentService:
    """Creates gateway orders for online orders and reports payment status."""

    def __init__(self, store, order_controller, gateway_client=None,
                 gateway_config: Optional[PaymentGatewayConfig] = None):
        self.store = store
        self.order_controller = order_controller
        self.gateway_client = gateway_client
        self.gateway_config = gateway_config

    def create_payment(self, principal: Principal, order_id: int) -> Dict[str, Any]:
        """
        Create a gateway order for an unpaid online order.

        Returns:
            Checkout data for the client: orderId (gateway), amount (minor units),
            currency and keyId

        Raises:
            PaymentGatewayNotConfigured: Gateway credentials are missing
            OrderNotFound / AuthorizationError: From the order lookup
            OrderStateError: Order is not an unpaid online order
            PaymentGatewayError: Gateway call failed
        """
        if self.gateway_client is None or self.gateway_config is None:
            raise PaymentGatewayNotConfigured()

        order = self.order_controller.get_order(principal, order_id)
        if order.payment_method is not PaymentMethod.ONLINE:
            raise OrderStateError("Only online orders take gateway payments")
        if order.payment_status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
            raise OrderStateError(f"Order {order_id} is already {order.payment_status.value}")
        if order.total <= 0:
            raise ValidationError("Order total must be positive")

        gateway_order = self.gateway_client.create_order(
            order.total,
            receipt=f"order_{order_id}",
            notes={"orderId": str(order_id), "userId": str(order.user_id)},
        )
        currency = gateway_order.get("currency") or self.gateway_config.currency
        self.store.insert_payment(Payment(
            order_id=order_id,
            external_order_id=gateway_order["id"],
            amount=order.total,
            currency=currency,
        ))
        logger.info("Gateway order %s created for order %s amount=%s %s",
                    gateway_order["id"], order_id, order.total, currency)
        return {
            "orderId": gateway_order["id"],
            "amount": gateway_order.get("amount"),
            "currency": currency,
            "keyId": self.gateway_config.key_id,
        }

    def payment_status(self, principal: Principal, order_id: int) -> Payment:
        """Latest payment for an order the caller may see."""
        self.order_controller.get_order(principal, order_id)
        payment = self.store.get_payment_for_order(order_id)
        if payment is None:
            raise PaymentNotFound(f"No payment for order {order_id}")
        return payment
