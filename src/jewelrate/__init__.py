# src/jewelrate/__init__.py
"""
JewelRate - Live-Rate Jewelry Pricing and Checkout Service

Prices jewelry inventory from live precious-metal spot rates (with
operator-set fallbacks) and runs a two-phase checkout that never
oversells stock while payment confirmation is asynchronous.
"""

__version__ = "1.0.0"
