# src/jewelrate/adapters/providers/base.py
"""
Base Provider Interface for Spot Price Providers

This module defines the abstract base class for live metal price feeds.
It establishes the contract that all provider implementations must follow.

Files that USE this module:
- jewelrate.adapters.providers.goldprice (GoldPriceProvider implements SpotRateProvider)
- jewelrate.application.rate_cache (depends on the SpotRateProvider contract)

Files that this module USES:
- jewelrate.domain.models (SpotPrices)
"""
from abc import ABC, abstractmethod

from jewelrate.domain.models import SpotPrices


class SpotRateProvider(ABC):
    @abstractmethod
    def fetch_spot(self) -> SpotPrices:
        """
        Return gold and silver prices per troy ounce.

        Raises:
            UpstreamTimeout, UpstreamUnavailable or MalformedUpstreamData
        """
        raise NotImplementedError
