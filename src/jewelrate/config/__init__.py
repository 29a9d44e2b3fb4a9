# src/jewelrate/config/__init__.py
"""
Configuration Module

Provides centralized configuration management using Pydantic Settings.
Supports environment variables and a local .env file.
"""

from jewelrate.config.settings import PaymentGatewayConfig, Settings, WeightPolicy, settings

__all__ = ["PaymentGatewayConfig", "Settings", "WeightPolicy", "settings"]
