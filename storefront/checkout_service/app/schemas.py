"""Pydantic schemas for the checkout service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PositiveInt, field_validator


class CartLineCreate(BaseModel):
    product_id: str = Field(alias="productId", min_length=1, max_length=36)
    size: PositiveInt
    quantity: PositiveInt = 1

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("product_id")
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            msg = "productId must be non-empty"
            raise ValueError(msg)
        return cleaned


class CartLineUpdate(BaseModel):
    # zero or below removes the line
    quantity: int


class CartLineResponse(BaseModel):
    id: str
    product_id: str = Field(alias="productId")
    product_name: str = Field(alias="productName")
    brand: str
    size: int
    quantity: PositiveInt
    unit_price: Decimal = Field(alias="unitPrice")
    line_total: Decimal = Field(alias="lineTotal")

    model_config = ConfigDict(populate_by_name=True)


class CartResponse(BaseModel):
    user_id: str = Field(alias="userId")
    currency: str
    lines: list[CartLineResponse]
    total_items: int = Field(alias="totalItems")
    total_price: Decimal = Field(alias="totalPrice")

    model_config = ConfigDict(populate_by_name=True)


class CartTotalsResponse(BaseModel):
    total_items: int = Field(alias="totalItems")
    subtotal: Decimal
    estimated_tax: Decimal = Field(alias="estimatedTax")
    estimated_total: Decimal = Field(alias="estimatedTotal")
    currency: str

    model_config = ConfigDict(populate_by_name=True)


class AddressPayload(BaseModel):
    """Raw address input; structural checks happen in ``validation`` so every error is reported."""

    name: str = ""
    phone: str = ""
    email: str = ""
    street: str = Field(default="", validation_alias=AliasChoices("street", "address"))
    city: str = ""
    state: str = ""
    postal_code: str = Field(
        default="",
        validation_alias=AliasChoices("postalCode", "postal_code", "pincode"),
        serialization_alias="postalCode",
    )

    model_config = ConfigDict(populate_by_name=True)


class CheckoutRequest(BaseModel):
    shipping_address: AddressPayload = Field(alias="shippingAddress")
    billing_same_as_shipping: bool = Field(default=True, alias="billingSameAsShipping")
    billing_address: AddressPayload | None = Field(default=None, alias="billingAddress")

    model_config = ConfigDict(populate_by_name=True)


class AddressResponse(BaseModel):
    name: str
    phone: str
    email: str
    street: str
    city: str
    state: str
    postal_code: str = Field(alias="postalCode")

    model_config = ConfigDict(populate_by_name=True)


class OrderLineResponse(BaseModel):
    id: str
    product_id: str = Field(alias="productId")
    product_name: str = Field(alias="productName")
    size: int
    quantity: PositiveInt
    unit_price: Decimal = Field(alias="unitPrice")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderResponse(BaseModel):
    id: str
    user_id: str = Field(alias="userId")
    status: str
    currency: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    total_minor: int = Field(alias="totalMinor")
    shipping_address: AddressResponse = Field(alias="shippingAddress")
    billing_address: AddressResponse = Field(alias="billingAddress")
    gateway_order_id: str | None = Field(default=None, alias="gatewayOrderId")
    gateway_payment_id: str | None = Field(default=None, alias="gatewayPaymentId")
    lines: list[OrderLineResponse]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int


class OrderEventResponse(BaseModel):
    type: str
    payload: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PaymentIntentResponse(BaseModel):
    """Client-facing intent fields; untrusted once they leave the server."""

    order_id: str = Field(alias="orderId")
    attempt_number: PositiveInt = Field(alias="attemptNumber")
    gateway_order_id: str = Field(alias="gatewayOrderId")
    amount: int
    currency: str
    key_id: str = Field(alias="keyId")
    store_name: str = Field(alias="storeName")
    script_url: str = Field(alias="scriptUrl")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutResponse(BaseModel):
    order: OrderResponse
    payment: PaymentIntentResponse


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str = Field(
        validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id"),
        min_length=1,
        max_length=64,
    )
    gateway_payment_id: str = Field(
        validation_alias=AliasChoices("gatewayPaymentId", "razorpay_payment_id"),
        min_length=1,
        max_length=64,
    )
    gateway_signature: str = Field(
        validation_alias=AliasChoices("gatewaySignature", "razorpay_signature"),
        min_length=1,
        max_length=256,
    )
    order_id: str | None = Field(default=None, validation_alias=AliasChoices("orderId", "order_id"))

    model_config = ConfigDict(populate_by_name=True)


class VerifyPaymentResponse(BaseModel):
    success: bool
    order_id: str = Field(alias="orderId")
    status: str
    already_confirmed: bool = Field(alias="alreadyConfirmed")

    model_config = ConfigDict(populate_by_name=True)


class PaymentFailureReport(BaseModel):
    gateway_order_id: str = Field(
        validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id"),
        min_length=1,
        max_length=64,
    )
    code: str | None = Field(default=None, max_length=64)
    description: str | None = Field(default=None, max_length=512)

    model_config = ConfigDict(populate_by_name=True)
