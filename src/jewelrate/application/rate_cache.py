# src/jewelrate/application/rate_cache.py
"""
Rate Cache - Live Metal Rates with Stored-Rate Fallback

This module turns the raw spot feed into the per-gram rate table used for
every price shown or charged. It owns the cached live result (no module
globals), converts troy-ounce prices to grams, applies the per-metal
calibration, and merges operator-set rates for metals the feed does not
cover. Upstream failures only cost freshness: the table falls back to the
stored rates and get_rates() never raises.

Concurrent callers that find the cache expired share a single upstream
fetch; followers wait for the leader instead of calling the feed again.

Files that USE this module:
- jewelrate.application.valuation (quotes use the merged rate table)
- jewelrate.application.order_service (checkout price snapshots)
- jewelrate.adapters.http.routes (GET /metals/prices)
- jewelrate.app (builds the process-wide cache)

Files that this module USES:
- jewelrate.adapters.providers.base (SpotRateProvider contract)
- jewelrate.adapters.persistence.store (stored metal rates)
- jewelrate.domain.models (RateEntry, SpotPrices)
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Tuple

from jewelrate.adapters.providers.base import SpotRateProvider
from jewelrate.domain.errors import UpstreamError
from jewelrate.domain.models import Metal, RateEntry, RateOrigin, SpotPrices

log = logging.getLogger(__name__)

TROY_OUNCE_GRAMS = Decimal("31.1035")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateCache:
    """
    Process-wide cache of the last successful live fetch.

    Attributes:
        provider: Spot feed client
        ttl: Validity window of a live result
        calibration: Per-metal multipliers applied after unit conversion
    """

    def __init__(
        self,
        provider: SpotRateProvider,
        ttl: timedelta = timedelta(minutes=5),
        calibration: Optional[Mapping[str, Decimal]] = None,
        clock: Callable[[], datetime] = _utcnow,
        wait_timeout: float = 15.0,
    ):
        """
        Initialize the cache (empty at cold start).

        Args:
            provider: SpotRateProvider used for refreshes
            ttl: Maximum age at which a live result may be served
            calibration: Multipliers keyed by metal name (missing metals use 1)
            clock: Time source, injectable for tests
            wait_timeout: Upper bound, in seconds, a follower waits for the leader's fetch
        """
        self.provider = provider
        self.ttl = ttl
        self.calibration = {k.lower(): Decimal(v) for k, v in (calibration or {}).items()}
        self._clock = clock
        self._wait_timeout = wait_timeout
        self._lock = threading.Lock()
        self._live: Optional[Dict[str, Decimal]] = None
        self._fetched_at: Optional[datetime] = None
        self._inflight: Optional[threading.Event] = None

    # ------------------------------------------------------------------
    # Live part
    # ------------------------------------------------------------------

    def _cache_valid(self) -> bool:
        """Caller must hold the lock."""
        if self._live is None or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.ttl

    def invalidate(self) -> None:
        """Drop the cached live result so the next call refreshes."""
        with self._lock:
            self._live = None
            self._fetched_at = None

    def to_per_gram(self, spot: SpotPrices) -> Dict[str, Decimal]:
        """
        Convert troy-ounce spot prices to calibrated per-gram rates.

        Returns:
            Mapping of metal name to price per gram
        """
        per_oz = {
            Metal.GOLD.value: spot.gold_per_oz,
            Metal.SILVER.value: spot.silver_per_oz,
        }
        return {
            metal: price / TROY_OUNCE_GRAMS * self.calibration.get(metal, Decimal("1"))
            for metal, price in per_oz.items()
        }

    def live_rates(self) -> Optional[Dict[str, Decimal]]:
        """
        Return the live per-gram table, refreshing it if the window elapsed.

        Returns:
            Rates for the live metals, or None when the feed failed
        """
        return self.live_snapshot()[0]

    def live_snapshot(self) -> Tuple[Optional[Dict[str, Decimal]], Optional[datetime]]:
        """
        Live per-gram table together with the time it was fetched.

        Both values are read under the same lock, so the timestamp always
        belongs to the rates it is returned with.

        Returns:
            (rates, fetched_at), or (None, None) when the feed failed
        """
        with self._lock:
            if self._cache_valid():
                log.debug("Using cached live rates (fetched %s)", self._fetched_at)
                return dict(self._live), self._fetched_at  # type: ignore[arg-type]
            if self._inflight is None:
                self._inflight = threading.Event()
                done = self._inflight
                leader = True
            else:
                done = self._inflight
                leader = False

        if not leader:
            log.debug("Live rate refresh already in flight, waiting")
            done.wait(self._wait_timeout)
            with self._lock:
                if self._cache_valid():
                    return dict(self._live), self._fetched_at  # type: ignore[arg-type]
                return None, None

        rates: Optional[Dict[str, Decimal]] = None
        fetched_at: Optional[datetime] = None
        try:
            spot = self.provider.fetch_spot()
            rates = self.to_per_gram(spot)
            log.info(
                "Live rates refreshed: %s",
                ", ".join(f"{m}={r.quantize(Decimal('0.01'))}/g" for m, r in rates.items()),
            )
        except UpstreamError as e:
            log.warning("Live rates unavailable, falling back to stored rates: %s", e)
        except Exception as e:
            log.error("Unexpected error fetching live rates, falling back: %s", e, exc_info=True)
        finally:
            with self._lock:
                if rates is not None:
                    fetched_at = self._clock()
                    self._live = rates
                    self._fetched_at = fetched_at
                self._inflight = None
            done.set()
        if rates is None:
            return None, None
        return dict(rates), fetched_at

    # ------------------------------------------------------------------
    # Merged table
    # ------------------------------------------------------------------

    def get_entries(self, store) -> Dict[str, RateEntry]:
        """
        Build the authoritative per-metal entries.

        Live gold/silver win when the feed answered; every other metal (and
        every metal on feed failure) comes from the store. Store failures
        yield whatever was assembled so far, possibly nothing.

        Args:
            store: Store exposing list_metal_rates()

        Returns:
            Mapping of metal name to RateEntry (only positive rates)
        """
        entries: Dict[str, RateEntry] = {}
        live, fetched_at = self.live_snapshot()
        if live:
            for metal, price in live.items():
                if price > 0:
                    entries[metal] = RateEntry(metal, price, RateOrigin.LIVE, fetched_at)
        else:
            log.info("Live rates unavailable, using stored metal prices")

        try:
            stored = store.list_metal_rates()
        except Exception as e:
            log.error("Error fetching stored metal prices: %s", e)
            return entries

        for row in stored:
            metal = row.metal.lower()
            if live and metal in entries:
                continue
            if row.price_per_gram is None or row.price_per_gram <= 0:
                log.warning("Ignoring non-positive stored rate for %s", metal)
                continue
            entries[metal] = RateEntry(metal, row.price_per_gram, RateOrigin.STORED, row.updated_at)
        return entries

    def get_rates(self, store) -> Dict[str, Decimal]:
        """
        Return the merged price table (metal name -> price per gram).

        Never raises for feed or store failures; an empty table means the
        caller must fall back to per-item stored prices.
        """
        return {metal: e.price_per_gram for metal, e in self.get_entries(store).items()}
