"""Pydantic request/response schemas for the store API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. Responses use camelCase field names on the wire.
"""

import json

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from shared.contact import is_valid_email


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class SetStockLevelsRequest(_WireModel):
    stock_quantity: int | None = Field(default=None, ge=0)
    reserved_quantity: int | None = Field(default=None, ge=0)
    adjustment: int | None = None
    low_stock_threshold: int | None = Field(default=None, ge=0)
    reason: str = "Manual adjustment"


class StockView(_WireModel):
    product_id: str
    stock_quantity: int
    reserved_quantity: int
    available_quantity: int
    low_stock_threshold: int


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class RegisterProductRequest(_WireModel):
    product_id: str
    name: str
    price: float = Field(ge=0)
    currency: str = "GHS"
    required_options: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(_WireModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    selected_options: dict[str, str] = Field(default_factory=dict)


class UpdateCartItemRequest(_WireModel):
    quantity: int = Field(ge=1)


class CartLineView(_WireModel):
    item_key: str
    product_id: str
    product_name: str | None = None
    selected_options: dict[str, str] = Field(default_factory=dict)
    quantity: int
    price_at_add: float
    subtotal: float


class CartView(_WireModel):
    items: list[CartLineView] = Field(default_factory=list)
    item_count: int = 0
    total_amount: float = 0.0
    currency: str = "GHS"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class ShippingAddressSchema(_WireModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    region: str = Field(min_length=1)
    country: str = Field(min_length=1)
    postal_code: str | None = None
    phone: str | None = None


class PlaceOrderRequest(_WireModel):
    shipping_address: ShippingAddressSchema
    payment_method: str = "CARD"
    notes: str | None = Field(default=None, max_length=500)


class PlaceGuestOrderRequest(PlaceOrderRequest):
    guest_name: str = Field(min_length=1)
    guest_email: str
    guest_phone: str | None = None

    @field_validator("guest_email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Please enter a valid email address")
        return value


class OrderItemView(_WireModel):
    product_id: str
    item_key: str
    product_name: str | None = None
    selected_options: dict[str, str] = Field(default_factory=dict)
    quantity: int
    price_at_order: float
    subtotal: float


class StatusChangeView(_WireModel):
    status: str
    reason: str | None = None
    changed_by: str | None = None
    changed_at: str


class OrderView(_WireModel):
    id: str
    status: str
    payment_status: str
    items: list[OrderItemView]
    total_amount: float
    currency: str
    shipping_address: ShippingAddressSchema | None = None
    payment_method: str | None = None
    notes: str | None = None
    user_id: str | None = None
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    current_payment_id: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    status_history: list[StatusChangeView] = Field(default_factory=list)
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class InitiatePaymentRequest(_WireModel):
    callback_url: str
    idempotency_key: str = Field(min_length=1, max_length=255)
    guest_email: str | None = None


class RefundPaymentRequest(_WireModel):
    reason: str = Field(min_length=1, max_length=500)


class PaymentView(_WireModel):
    id: str
    order_id: str
    status: str
    gateway: str | None = None
    transaction_ref: str | None = None
    idempotency_key: str
    checkout_url: str | None = None
    amount: float
    currency: str
    failure_reason: str | None = None
    created_at: str | None = None
    verified_at: str | None = None


# ---------------------------------------------------------------------------
# Admin order operations
# ---------------------------------------------------------------------------
class ChangeOrderStatusRequest(_WireModel):
    status: str
    reason: str | None = Field(default=None, max_length=500)


class FulfillOrderRequest(_WireModel):
    tracking_number: str | None = None
    carrier: str | None = None


# ---------------------------------------------------------------------------
# Aggregate → view helpers
# ---------------------------------------------------------------------------
def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _options(raw) -> dict:
    return json.loads(raw) if raw else {}


def stock_view(record) -> dict:
    return StockView(
        product_id=str(record.product_id),
        stock_quantity=record.stock_quantity,
        reserved_quantity=record.reserved_quantity,
        available_quantity=record.available_quantity,
        low_stock_threshold=record.low_stock_threshold,
    ).model_dump(by_alias=True)


def cart_view(cart) -> dict:
    if cart is None:
        return CartView().model_dump(by_alias=True)
    return CartView(
        items=[
            CartLineView(
                item_key=line.item_key,
                product_id=str(line.product_id),
                product_name=line.product_name,
                selected_options=line.options(),
                quantity=line.quantity,
                price_at_add=line.price_at_add,
                subtotal=line.subtotal,
            )
            for line in cart.items
        ],
        item_count=cart.item_count,
        total_amount=cart.total_amount,
        currency=cart.currency,
    ).model_dump(by_alias=True)


def order_view(order) -> dict:
    address = order.shipping_address
    history = sorted(order.status_history, key=lambda change: change.changed_at)
    return OrderView(
        id=str(order.id),
        status=order.status,
        payment_status=order.payment_status,
        items=[
            OrderItemView(
                product_id=str(item.product_id),
                item_key=item.item_key,
                product_name=item.product_name,
                selected_options=_options(item.selected_options),
                quantity=item.quantity,
                price_at_order=item.price_at_order,
                subtotal=item.subtotal,
            )
            for item in order.items
        ],
        total_amount=order.total_amount,
        currency=order.currency,
        shipping_address=(
            ShippingAddressSchema(
                street=address.street,
                city=address.city,
                region=address.region,
                country=address.country,
                postal_code=address.postal_code,
                phone=address.phone,
            )
            if address
            else None
        ),
        payment_method=order.payment_method,
        notes=order.notes,
        user_id=str(order.user_id) if order.user_id else None,
        guest_name=order.guest_name,
        guest_email=order.guest_email,
        guest_phone=order.guest_phone,
        current_payment_id=str(order.current_payment_id) if order.current_payment_id else None,
        tracking_number=order.tracking_number,
        carrier=order.carrier,
        status_history=[
            StatusChangeView(
                status=change.status,
                reason=change.reason,
                changed_by=change.changed_by,
                changed_at=_iso(change.changed_at),
            )
            for change in history
        ],
        created_at=_iso(order.created_at),
    ).model_dump(by_alias=True)


def payment_view(payment) -> dict:
    return PaymentView(
        id=str(payment.id),
        order_id=str(payment.order_id),
        status=payment.status,
        gateway=payment.gateway,
        transaction_ref=payment.transaction_ref,
        idempotency_key=payment.idempotency_key,
        checkout_url=payment.checkout_url,
        amount=payment.amount,
        currency=payment.currency,
        failure_reason=payment.failure_reason,
        created_at=_iso(payment.created_at),
        verified_at=_iso(payment.verified_at),
    ).model_dump(by_alias=True)
