# storefront/domain/schemas.py
from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0)
    variant_id: int | None = Field(None, gt=0)
    quantity: int = Field(..., gt=0, description="Must be a positive integer")


class QuantityIn(BaseModel):
    """Schema for changing a cart line quantity (use DELETE to remove)."""

    quantity: int


class MergeIn(BaseModel):
    """Schema for merging a guest cart into a user cart at login."""

    session_token: str = Field(..., min_length=1)
    user_id: int = Field(..., gt=0)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: int | None = None
    product_name: str
    sku: str | None = None
    quantity: int
    unit_price: int
    line_total: int


class CartOut(BaseModel):
    """Schema for a cart (response)."""

    cart_id: int
    session_token: str | None = None
    user_id: int | None = None
    version: int
    items: List[CartItemOut]
    subtotal: int

    model_config = ConfigDict(from_attributes=True)


class AddressIn(BaseModel):
    """Destination address captured at checkout."""

    name: str = Field(..., min_length=1, max_length=100)
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166 alpha-2 code")

    @field_validator("name", "street", "city", "postal")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.strip().upper()


class ShippingSelectionIn(BaseModel):
    method_id: int = Field(..., gt=0)
    pickup_point_id: str | None = Field(None, max_length=64)
    pickup_point_name: str | None = Field(None, max_length=200)


class CheckoutSessionIn(BaseModel):
    """Schema for starting a payment session from the current cart."""

    shipping: ShippingSelectionIn
    address: AddressIn
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class CheckoutSessionOut(BaseModel):
    session_id: str
    redirect_url: str


class SnapshotLine(BaseModel):
    """One cart line frozen at submission time."""

    product_id: int
    variant_id: int | None = None
    product_name: str
    sku: str | None = None
    unit_price: int
    quantity: int
    weight_grams: int


class CheckoutSnapshot(BaseModel):
    """Everything the customer is paying for, keyed by the provider session id.

    Materialization reads prices, names and quantities from here, never from
    the live cart or catalog.
    """

    session_id: str
    cart_id: int
    user_id: int | None = None
    email: str
    lines: List[SnapshotLine]
    shipping_method_id: int
    shipping_method_name: str
    carrier_name: str | None = None
    pickup_point_id: str | None = None
    pickup_point_name: str | None = None
    shipping_cost: int
    subtotal: int
    total: int
    currency: str
    address: AddressIn
    created_at: datetime


class ShippingMethodOut(BaseModel):
    id: int
    zone_id: int
    zone_name: str
    name: str
    description: str | None = None
    carrier_name: str | None = None
    rate_type: str
    estimated_days: int | None = None
    cost: int | None = None
    configuration_gap: bool = False


class StockShortageOut(BaseModel):
    product_id: int
    variant_id: int | None = None
    product_name: str
    requested: int
    available: int


class CheckoutSummaryOut(BaseModel):
    cart_id: int
    items: List[CartItemOut]
    item_count: int
    total_quantity: int
    subtotal: int
    total_weight_grams: int
    currency: str
    stock_ok: bool
    shortages: List[StockShortageOut]
    country: str | None = None
    shipping_methods: List[ShippingMethodOut]


class OrderItemOut(BaseModel):
    product_id: int
    variant_id: int | None = None
    product_name: str
    sku: str | None = None
    unit_price: int
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: int
    order_number: str
    checkout_session_id: str
    user_id: int | None = None
    email: str
    status: str
    subtotal: int
    shipping_cost: int
    total: int
    currency: str
    shipping_name: str
    shipping_street: str
    shipping_city: str
    shipping_state: str | None = None
    shipping_postal: str
    shipping_country: str
    shipping_method_name: str | None = None
    carrier_name: str | None = None
    shipment_number: str | None = None
    label_url: str | None = None
    stock_shortages: List[StockShortageOut] | None = None
    items: List[OrderItemOut]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderPollOut(BaseModel):
    status: Literal["ready", "processing"]
    order: OrderOut | None = None
    poll_interval_seconds: float
    poll_budget_seconds: float


class StatusUpdateIn(BaseModel):
    status: str = Field(..., min_length=1)


class ShipmentOut(BaseModel):
    order_number: str
    shipment_number: str
    label_url: str | None = None
    status: str


class TrackingSyncOut(BaseModel):
    updated: bool
    new_status: str | None = None
    message: str


class TrackingEventOut(BaseModel):
    status: str
    description: str | None = None
    occurred_at: str | None = None


class TrackingOut(BaseModel):
    """Carrier tracking for the customer. ``available`` is false when the carrier could not be reached."""

    order_number: str
    shipment_number: str
    carrier_name: str | None = None
    available: bool
    status: str | None = None
    events: List[TrackingEventOut] = []
    message: str | None = None
