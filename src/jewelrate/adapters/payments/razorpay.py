# src/jewelrate/adapters/payments/razorpay.py
"""
Razorpay Gateway Client - Payment Order Creation

This module implements the small part of the Razorpay REST API the
checkout needs: creating a gateway order for an online payment. Amounts
go over the wire in the smallest currency unit (paise). Callback
signatures are checked by the payment service, not here.

Files that USE this module:
- jewelrate.application.payment_service (PaymentService.create_payment)
- jewelrate.app (builds the client when credentials are configured)
- tests.test_payment_service (unit tests)

Files that this module USES:
- jewelrate.config (PaymentGatewayConfig)
- jewelrate.domain.errors (PaymentGatewayError)
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import requests

from jewelrate.config import PaymentGatewayConfig
from jewelrate.domain.errors import PaymentGatewayError

log = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a money amount to the gateway's integer minor units."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RazorpayClient:
    def __init__(self, config: PaymentGatewayConfig, session: Optional[requests.Session] = None):
        """
        Initialize the gateway client.

        Args:
            config: Gateway credentials and endpoint
            session: Optional requests session (connection reuse)
        """
        self.config = config
        self.session = session or requests.Session()

    def create_order(self, amount: Decimal, receipt: str,
                     notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Create a gateway order.

        Args:
            amount: Amount in major units (e.g. rupees)
            receipt: Merchant receipt reference
            notes: Free-form key/value notes stored with the gateway order

        Returns:
            Gateway order JSON (contains 'id', 'amount', 'currency')

        Raises:
            PaymentGatewayError: On timeout, connection error, non-success status or bad JSON
        """
        url = f"{self.config.api_base.rstrip('/')}/orders"
        payload = {
            "amount": to_minor_units(amount),
            "currency": self.config.currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            log.info("Creating gateway order receipt=%s amount=%s %s", receipt, amount, self.config.currency)
            resp = self.session.post(
                url,
                json=payload,
                auth=(self.config.key_id, self.config.key_secret),
                timeout=self.config.timeout_seconds,
            )
            resp.raise_for_status()
        except requests.exceptions.Timeout as e:
            log.error("Gateway timeout after %d seconds", self.config.timeout_seconds)
            raise PaymentGatewayError(f"Payment gateway timeout after {self.config.timeout_seconds}s") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            log.error("Gateway HTTP error %s: %s", status, e)
            raise PaymentGatewayError(f"Payment gateway HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            log.error("Gateway request failed: %s", e)
            raise PaymentGatewayError(f"Payment gateway request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            log.error("Gateway returned invalid JSON: %s", e)
            raise PaymentGatewayError(f"Payment gateway returned invalid JSON: {e}") from e

        if not isinstance(data, dict) or not data.get("id"):
            log.error("Gateway response missing order id: %s", str(data)[:200])
            raise PaymentGatewayError("Payment gateway response missing order id")
        return data
