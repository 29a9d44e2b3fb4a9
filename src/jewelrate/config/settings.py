# src/jewelrate/config/settings.py
"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Supports environment variables and a local .env file with validation.

Files that USE this module:
- jewelrate.app (loads settings for service wiring)
- jewelrate.adapters.providers.goldprice (feed URL and timeout)
- jewelrate.adapters.persistence.database (database URL)
- jewelrate.application.rate_cache (cache window and calibration)

Files that this module USES:
- jewelrate.shared.validators (validation functions for settings)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from dataclasses import dataclass  # Immutable gateway configuration
from decimal import Decimal  # Precise calibration multipliers
from enum import Enum  # Weight consistency policy values
from typing import Optional  # Type hints for optional values

from pydantic import Field, field_validator  # Data validation and field configuration
from pydantic_settings import BaseSettings, SettingsConfigDict  # Settings management with Pydantic

from jewelrate.shared.validators import validate_api_key  # Validate gateway credential format


# Calibration aligning the feed with the operator's reference board
DEFAULT_GOLD_CALIBRATION = (Decimal("141.48") / Decimal("13001.05")) * 100
DEFAULT_SILVER_CALIBRATION = Decimal("257.35") / Decimal("234.11")


class WeightPolicy(str, Enum):
    """How to treat items where net + extra weight differs from gross weight."""
    OFF = "off"
    WARN = "warn"
    ENFORCE = "enforce"


@dataclass(frozen=True)
class PaymentGatewayConfig:
    """Credentials and endpoint of the payment gateway."""
    key_id: str
    key_secret: str
    api_base: str = "https://api.razorpay.com/v1"
    currency: str = "INR"
    timeout_seconds: int = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Live rate feed ---
    rate_feed_url: str = Field(
        default="https://data-asg.goldprice.org/dbXRates/INR", alias="RATE_FEED_URL"
    )
    http_timeout_seconds: int = Field(default=8, alias="HTTP_TIMEOUT_SECONDS", ge=1, le=60)

    # --- Cache Settings (in minutes) ---
    rate_cache_minutes: int = Field(default=5, alias="RATE_CACHE_MINUTES", ge=1, le=1440)

    # --- Calibration multipliers ---
    gold_calibration: Decimal = Field(default=DEFAULT_GOLD_CALIBRATION, alias="GOLD_CALIBRATION", gt=0)
    silver_calibration: Decimal = Field(default=DEFAULT_SILVER_CALIBRATION, alias="SILVER_CALIBRATION", gt=0)

    # --- Persistence ---
    database_url: str = Field(default="sqlite:///./data/jewelrate.db", alias="DATABASE_URL")

    # --- Payment gateway ---
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", alias="RAZORPAY_KEY_SECRET")
    razorpay_api_base: str = Field(default="https://api.razorpay.com/v1", alias="RAZORPAY_API_BASE")
    payment_currency: str = Field(default="INR", alias="PAYMENT_CURRENCY")

    # --- Inventory validation ---
    weight_policy: WeightPolicy = Field(default=WeightPolicy.OFF, alias="WEIGHT_POLICY")

    # --- HTTP server ---
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT", ge=1, le=65535)

    # --- Logging (for server deployment) ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_stdout: bool = Field(default=True, alias="JEWELRATE_LOG_STDOUT")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    @property
    def calibration(self) -> dict:
        """Per-metal calibration multipliers keyed by metal name."""
        return {"gold": self.gold_calibration, "silver": self.silver_calibration}

    @property
    def payment_gateway(self) -> Optional[PaymentGatewayConfig]:
        """
        Gateway configuration, or None when credentials are not set.

        Returns:
            PaymentGatewayConfig if both key id and secret are present
        """
        if not (self.razorpay_key_id and self.razorpay_key_secret):
            return None
        return PaymentGatewayConfig(
            key_id=self.razorpay_key_id,
            key_secret=self.razorpay_key_secret,
            api_base=self.razorpay_api_base,
            currency=self.payment_currency,
            timeout_seconds=self.http_timeout_seconds,
        )

    @field_validator("razorpay_key_id", "razorpay_key_secret")
    @classmethod
    def validate_gateway_key(cls, v: str) -> str:
        """Validate gateway credential format (empty means not configured)."""
        if v and not validate_api_key(v):
            raise ValueError("Invalid payment gateway credential format")
        return v

    @field_validator("payment_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Currency must be an ISO-4217 style three letter code."""
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("PAYMENT_CURRENCY must be a three letter code")
        return v


# Global settings instance
settings = Settings()
