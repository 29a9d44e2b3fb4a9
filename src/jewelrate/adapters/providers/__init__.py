# src/jewelrate/adapters/providers/__init__.py
"""
Provider Adapters - External Spot Price Feeds

This package contains adapters for live metal price feeds.
All providers implement the SpotRateProvider interface.
"""

from jewelrate.adapters.providers.base import SpotRateProvider
from jewelrate.adapters.providers.goldprice import GoldPriceProvider

__all__ = [
    "SpotRateProvider",
    "GoldPriceProvider",
]
