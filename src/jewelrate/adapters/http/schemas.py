# src/jewelrate/adapters/http/schemas.py
"""
HTTP Request Schemas

Pydantic models for the JSON bodies the API accepts. Field names follow
the camelCase the web client sends. Numeric pricing fields are not typed
here: they are parsed by the application layer so malformed values map
to InvalidNumericInput instead of a generic validation error.
"""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class OrderItemIn(BaseModel):
    id: int = Field(..., description="Product id")
    quantity: int = Field(1, ge=1)


class CreateOrderRequest(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    total: Optional[Any] = Field(None, description="Total shown to the buyer; informational only")
    address: Optional[str] = None
    paymentMethod: str = Field("cod", description="cod | online")


class CreatePaymentRequest(BaseModel):
    orderId: int


class VerifyPaymentRequest(BaseModel):
    externalOrderId: str = Field(..., validation_alias=AliasChoices("externalOrderId", "razorpay_order_id"))
    externalPaymentId: str = Field(..., validation_alias=AliasChoices("externalPaymentId", "razorpay_payment_id"))
    signature: str = Field(..., validation_alias=AliasChoices("signature", "razorpay_signature"))
    orderId: Optional[int] = None


class UpdateMetalPriceRequest(BaseModel):
    pricePerGram: Any = Field(..., validation_alias=AliasChoices("pricePerGram", "price_per_gram"))
