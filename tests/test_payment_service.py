# tests/test_payment_service.py
"""
Payment Tests - Gateway Orders, Signature Verification and Capture

This module contains unit tests for PaymentVerifier, PaymentService and
the Razorpay client. It covers forged and replayed callbacks, the
capture -> paid -> stock commit transaction, and the reconciliation
queue for captures whose stock commit fails.

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- jewelrate.application.payment_service (PaymentVerifier, PaymentService, sign)
- jewelrate.adapters.payments.razorpay (RazorpayClient)
- unittest.mock (Mock for gateway mocking)
"""
import hashlib
import hmac
import logging
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from jewelrate.adapters.payments.razorpay import RazorpayClient, to_minor_units
from jewelrate.application.order_service import OrderStockController
from jewelrate.application.payment_service import PaymentService, PaymentVerifier, sign
from jewelrate.config import PaymentGatewayConfig
from jewelrate.domain.errors import (
    InvalidSignature,
    OrderStateError,
    PaymentGatewayError,
    PaymentGatewayNotConfigured,
    PaymentNotFound,
    ValidationError,
)
from jewelrate.domain.models import (
    CaptureStatus,
    OrderLine,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
)

SECRET = "test_secret_key"
GATEWAY = PaymentGatewayConfig(key_id="rzp_test_key", key_secret=SECRET)


@pytest.fixture
def orders(store, rate_cache):
    return OrderStockController(store, rate_cache)


@pytest.fixture
def verifier(store, orders):
    return PaymentVerifier(store, orders, GATEWAY)


def _online_order(orders, store, principal, lines, external_order_id="order_EXT1"):
    order = orders.create_order(
        principal, [OrderLine(pid, qty) for pid, qty in lines],
        address="7 Park Street, Kolkata", payment_method=PaymentMethod.ONLINE,
    )
    store.insert_payment(Payment(order.id, external_order_id, order.total, "INR"))
    return order


class TestSign:
    def test_matches_hmac_sha256_of_order_and_payment(self):
        expected = hmac.new(SECRET.encode(), b"order_A|pay_B", hashlib.sha256).hexdigest()
        assert sign(SECRET, "order_A", "pay_B") == expected


class TestPaymentVerifier:
    def test_valid_callback_captures_and_commits_stock(self, verifier, orders, store, customer, ring):
        order = _online_order(orders, store, customer, [(ring, 2)])

        result = verifier.verify("order_EXT1", "pay_1", sign(SECRET, "order_EXT1", "pay_1"))

        assert result.verified is True
        assert result.order_id == order.id
        assert result.already_captured is False
        assert result.anomalies == []
        stored = store.get_order(order.id)
        assert stored.status is OrderStatus.CONFIRMED
        assert stored.payment_status is PaymentStatus.PAID
        assert stored.transaction_id == "pay_1"
        payment = store.get_payment_by_external_order("order_EXT1")
        assert payment.status is CaptureStatus.CAPTURED
        assert payment.external_payment_id == "pay_1"
        assert store.get_stock(ring) == 0

    def test_forged_signature_changes_nothing_but_the_payment(self, verifier, orders, store, customer, ring):
        order = _online_order(orders, store, customer, [(ring, 1)])

        result = verifier.verify("order_EXT1", "pay_1", "0" * 64)

        assert result.verified is False
        assert store.get_payment_by_external_order("order_EXT1").status is CaptureStatus.FAILED
        assert store.get_order(order.id).payment_status is PaymentStatus.PENDING
        assert store.get_stock(ring) == 2

    def test_forged_signature_never_downgrades_captured_payment(self, verifier, orders, store, customer, ring):
        _online_order(orders, store, customer, [(ring, 1)])
        verifier.verify("order_EXT1", "pay_1", sign(SECRET, "order_EXT1", "pay_1"))

        assert verifier.verify("order_EXT1", "pay_1", "forged").verified is False
        assert store.get_payment_by_external_order("order_EXT1").status is CaptureStatus.CAPTURED

    def test_genuine_callback_after_forged_one_still_captures(self, verifier, orders, store, customer, ring):
        _online_order(orders, store, customer, [(ring, 1)])
        verifier.verify("order_EXT1", "pay_1", "forged")

        result = verifier.verify("order_EXT1", "pay_1", sign(SECRET, "order_EXT1", "pay_1"))

        assert result.verified is True
        assert store.get_stock(ring) == 1

    def test_replayed_callback_commits_stock_once(self, verifier, orders, store, customer, ring):
        _online_order(orders, store, customer, [(ring, 1)])
        signature = sign(SECRET, "order_EXT1", "pay_1")

        first = verifier.verify("order_EXT1", "pay_1", signature)
        second = verifier.verify("order_EXT1", "pay_1", signature)

        assert first.already_captured is False
        assert second.verified is True
        assert second.already_captured is True
        assert store.get_stock(ring) == 1

    def test_stock_race_after_capture_is_queued_for_reconciliation(
        self, verifier, orders, store, customer, other_customer, ring, caplog
    ):
        order = _online_order(orders, store, customer, [(ring, 2)])
        orders.create_order(other_customer, [OrderLine(ring, 1)], address="x", payment_method="cod")

        with caplog.at_level(logging.WARNING, logger="jewelrate.application.payment_service"):
            result = verifier.verify("order_EXT1", "pay_1", sign(SECRET, "order_EXT1", "pay_1"))

        assert result.verified is True
        assert [(s.product_id, s.requested, s.available) for s in result.anomalies] == [(ring, 2, 1)]
        assert store.get_order(order.id).payment_status is PaymentStatus.PAID
        assert store.get_stock(ring) == 1
        issues = store.list_reconciliation_issues()
        assert [(i.order_id, i.product_id, i.quantity) for i in issues] == [(order.id, ring, 2)]
        assert "Stock commit failed" in caplog.text

    def test_callback_for_cancelled_order_is_queued(self, verifier, orders, store, customer, ring):
        order = _online_order(orders, store, customer, [(ring, 1)])
        orders.cancel_order(customer, order.id)

        result = verifier.verify("order_EXT1", "pay_1", sign(SECRET, "order_EXT1", "pay_1"))

        assert result.verified is True
        assert store.get_payment_by_external_order("order_EXT1").status is CaptureStatus.CAPTURED
        issues = store.list_reconciliation_issues()
        assert len(issues) == 1
        assert issues[0].order_id == order.id
        assert issues[0].product_id is None
        assert store.get_stock(ring) == 2

    def test_order_id_must_match_payment(self, verifier, orders, store, customer, ring):
        order = _online_order(orders, store, customer, [(ring, 1)])
        with pytest.raises(ValidationError):
            verifier.verify("order_EXT1", "pay_1", sign(SECRET, "order_EXT1", "pay_1"), order_id=order.id + 1)

    def test_unknown_gateway_order(self, verifier):
        with pytest.raises(PaymentNotFound):
            verifier.verify("order_NOPE", "pay_1", sign(SECRET, "order_NOPE", "pay_1"))

    def test_missing_fields(self, verifier):
        with pytest.raises(ValidationError):
            verifier.verify("order_EXT1", "", "sig")

    def test_not_configured(self, store, orders):
        with pytest.raises(PaymentGatewayNotConfigured):
            PaymentVerifier(store, orders, None).verify("order_EXT1", "pay_1", "sig")

    def test_verify_or_raise(self, verifier, orders, store, customer, ring):
        _online_order(orders, store, customer, [(ring, 1)])
        with pytest.raises(InvalidSignature):
            verifier.verify_or_raise("order_EXT1", "pay_1", "forged")


class TestPaymentService:
    def _service(self, store, orders, gateway_id="order_EXT9"):
        client = Mock()
        client.create_order.return_value = {"id": gateway_id, "amount": 6435680, "currency": "INR"}
        return PaymentService(store, orders, client, GATEWAY), client

    def test_create_payment(self, store, orders, customer, ring):
        order = orders.create_order(customer, [OrderLine(ring, 1)], address="x", payment_method="online")
        service, client = self._service(store, orders)

        checkout = service.create_payment(customer, order.id)

        assert checkout == {"orderId": "order_EXT9", "amount": 6435680, "currency": "INR", "keyId": "rzp_test_key"}
        args, kwargs = client.create_order.call_args
        assert args[0] == Decimal("64356.80")
        assert kwargs["receipt"] == f"order_{order.id}"
        payment = store.get_payment_by_external_order("order_EXT9")
        assert payment.order_id == order.id
        assert payment.status is CaptureStatus.CREATED

    def test_cod_order_rejected(self, store, orders, customer, ring):
        order = orders.create_order(customer, [OrderLine(ring, 1)], address="x", payment_method="cod")
        service, client = self._service(store, orders)
        with pytest.raises(OrderStateError):
            service.create_payment(customer, order.id)
        client.create_order.assert_not_called()

    def test_paid_order_rejected(self, store, orders, customer, ring):
        order = orders.create_order(customer, [OrderLine(ring, 1)], address="x", payment_method="online")
        with store.transaction() as conn:
            store.mark_order_paid(conn, order.id, "pay_x")
        service, _ = self._service(store, orders)
        with pytest.raises(OrderStateError):
            service.create_payment(customer, order.id)

    def test_not_configured(self, store, orders, customer):
        with pytest.raises(PaymentGatewayNotConfigured):
            PaymentService(store, orders).create_payment(customer, 1)

    def test_payment_status(self, store, orders, customer, ring):
        order = _online_order(orders, store, customer, [(ring, 1)])
        service, _ = self._service(store, orders)

        assert service.payment_status(customer, order.id).external_order_id == "order_EXT1"

    def test_payment_status_without_payment(self, store, orders, customer, ring):
        order = orders.create_order(customer, [OrderLine(ring, 1)], address="x", payment_method="online")
        service, _ = self._service(store, orders)
        with pytest.raises(PaymentNotFound):
            service.payment_status(customer, order.id)


class TestRazorpayClient:
    def _session(self, payload=None, error=None):
        session = Mock()
        resp = Mock()
        resp.raise_for_status.return_value = None
        resp.json.return_value = payload
        session.post.return_value = resp
        if error is not None:
            session.post.side_effect = error
        return session

    def test_create_order(self):
        session = self._session({"id": "order_X", "amount": 1050, "currency": "INR"})

        data = RazorpayClient(GATEWAY, session=session).create_order(Decimal("10.50"), receipt="order_5")

        assert data["id"] == "order_X"
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.razorpay.com/v1/orders"
        assert kwargs["json"]["amount"] == 1050
        assert kwargs["json"]["receipt"] == "order_5"
        assert kwargs["auth"] == ("rzp_test_key", SECRET)

    def test_timeout(self):
        session = self._session(error=requests.exceptions.Timeout("slow"))
        with pytest.raises(PaymentGatewayError, match="timeout"):
            RazorpayClient(GATEWAY, session=session).create_order(Decimal("1"), receipt="r")

    def test_http_error(self):
        session = self._session()
        error_resp = Mock(status_code=401)
        session.post.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError(response=error_resp)
        with pytest.raises(PaymentGatewayError, match="HTTP 401"):
            RazorpayClient(GATEWAY, session=session).create_order(Decimal("1"), receipt="r")

    def test_missing_order_id(self):
        session = self._session({"error": "bad"})
        with pytest.raises(PaymentGatewayError, match="missing order id"):
            RazorpayClient(GATEWAY, session=session).create_order(Decimal("1"), receipt="r")

    def test_minor_units_round_half_up(self):
        assert to_minor_units(Decimal("10.005")) == 1001
        assert to_minor_units(Decimal("64356.80")) == 6435680
