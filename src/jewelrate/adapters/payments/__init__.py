# src/jewelrate/adapters/payments/__init__.py
"""
Payment Adapters - Payment Gateway Clients
"""

from jewelrate.adapters.payments.razorpay import RazorpayClient, to_minor_units

__all__ = ["RazorpayClient", "to_minor_units"]
