# src/jewelrate/adapters/providers/goldprice.py
"""
goldprice.org Provider for Gold/Silver Spot Prices

This module implements the client for the goldprice.org dbXRates feed,
which returns gold (XAU) and silver (XAG) prices per troy ounce in the
account currency. The call carries a hard timeout and never retries;
the rate cache decides what to do on failure.

Files that USE this module:
- jewelrate.app (builds the provider for the rate cache)
- tests.test_providers (unit tests)

Files that this module USES:
- jewelrate.adapters.providers.base (SpotRateProvider interface)
- jewelrate.config (settings for feed URL and timeout)
- jewelrate.domain.errors (typed upstream errors)
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import requests

from jewelrate.adapters.providers.base import SpotRateProvider
from jewelrate.config import settings
from jewelrate.domain.errors import MalformedUpstreamData, UpstreamTimeout, UpstreamUnavailable
from jewelrate.domain.models import SpotPrices

log = logging.getLogger(__name__)


class GoldPriceProvider(SpotRateProvider):
    """
    Client for https://data-asg.goldprice.org/dbXRates/<CURRENCY>.

    Expected response:
      {"items": [{"curr": "INR", "xauPrice": 215000.5, "xagPrice": 2650.1, ...}]}
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize the provider.

        Args:
            base_url: Optional custom feed URL (defaults to settings.rate_feed_url)
            timeout: Optional HTTP timeout in seconds (defaults to settings.http_timeout_seconds)
            session: Optional requests session (connection reuse)
        """
        self.url = base_url or settings.rate_feed_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.session = session

    def _get(self) -> requests.Response:
        getter = self.session.get if self.session is not None else requests.get
        return getter(self.url, timeout=self.timeout, headers={"Accept": "application/json"})

    def fetch_spot(self) -> SpotPrices:
        """
        Fetch gold and silver prices per troy ounce.

        Returns:
            SpotPrices with both metals populated

        Raises:
            UpstreamTimeout: If the feed does not answer within the timeout
            UpstreamUnavailable: On connection errors or non-success status
            MalformedUpstreamData: On invalid JSON or missing/invalid prices
        """
        try:
            log.info("Fetching spot prices from %s", self.url)
            resp = self._get()
        except requests.exceptions.Timeout as e:
            log.warning("Rate feed timeout after %d seconds, will fall back", self.timeout)
            raise UpstreamTimeout(f"Rate feed timeout after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            log.warning("Rate feed request failed (network/connection error), will fall back: %s", e)
            raise UpstreamUnavailable(f"Rate feed request failed: {e}") from e

        if resp.status_code >= 400:
            log.warning("Rate feed returned HTTP %d, will fall back", resp.status_code)
            raise UpstreamUnavailable(f"Rate feed returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            log.error("Rate feed returned invalid JSON: %s", e)
            raise MalformedUpstreamData(f"Rate feed returned invalid JSON: {e}") from e

        return self._parse(data)

    @classmethod
    def _parse(cls, data: Any) -> SpotPrices:
        if not isinstance(data, dict):
            log.error("Rate feed unexpected response type: %r", type(data))
            raise MalformedUpstreamData("Rate feed returned non-dict JSON")

        items = data.get("items")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            log.error("Rate feed response missing 'items[0]': %s", str(data)[:200])
            raise MalformedUpstreamData("Rate feed response missing 'items[0]'")

        item = items[0]
        gold = cls._price(item, "xauPrice")
        silver = cls._price(item, "xagPrice")
        log.debug("Rate feed spot: gold=%s/oz silver=%s/oz", gold, silver)
        return SpotPrices(gold_per_oz=gold, silver_per_oz=silver)

    @staticmethod
    def _price(item: dict, key: str) -> Decimal:
        raw = item.get(key)
        if raw is None or isinstance(raw, bool):
            raise MalformedUpstreamData(f"Rate feed response missing '{key}'")
        try:
            value = Decimal(str(raw))
        except (InvalidOperation, ValueError) as e:
            raise MalformedUpstreamData(f"Rate feed '{key}' is not numeric: {raw!r}") from e
        if not value.is_finite() or value <= 0:
            raise MalformedUpstreamData(f"Rate feed returned non-positive '{key}': {raw!r}")
        return value
