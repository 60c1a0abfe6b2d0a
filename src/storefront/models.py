"""Snapshots of store resources as the storefront receives them.

Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from shared.lifecycle import OrderPaymentStatus, OrderStatus, PaymentStatus


class _Snapshot(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class StockRecord(_Snapshot):
    product_id: str
    stock_quantity: int = 0
    reserved_quantity: int = 0
    available_quantity: int = 0
    low_stock_threshold: int | None = None


class CartLine(_Snapshot):
    item_key: str
    product_id: str
    product_name: str | None = None
    selected_options: dict[str, str] = Field(default_factory=dict)
    quantity: int
    price_at_add: float
    subtotal: float


class Cart(_Snapshot):
    items: list[CartLine] = Field(default_factory=list)
    item_count: int = 0
    total_amount: float = 0.0
    currency: str = "GHS"

    @property
    def is_empty(self) -> bool:
        return not self.items

    def line(self, item_key: str) -> CartLine | None:
        return next((line for line in self.items if line.item_key == item_key), None)

    def lines_for(self, product_id: str) -> list[CartLine]:
        return [line for line in self.items if line.product_id == product_id]


class ShippingAddress(_Snapshot):
    street: str
    city: str
    region: str
    country: str
    postal_code: str | None = None
    phone: str | None = None


class GuestDetails(_Snapshot):
    guest_name: str
    guest_email: str
    guest_phone: str | None = None


class OrderItem(_Snapshot):
    product_id: str
    item_key: str
    product_name: str | None = None
    selected_options: dict[str, str] = Field(default_factory=dict)
    quantity: int
    price_at_order: float
    subtotal: float


class StatusChange(_Snapshot):
    status: OrderStatus
    reason: str | None = None
    changed_by: str | None = None
    changed_at: str | None = None


class Order(_Snapshot):
    id: str
    status: OrderStatus
    payment_status: OrderPaymentStatus = OrderPaymentStatus.UNPAID
    items: list[OrderItem] = Field(default_factory=list)
    total_amount: float = 0.0
    currency: str = "GHS"
    shipping_address: ShippingAddress | None = None
    payment_method: str | None = None
    notes: str | None = None
    user_id: str | None = None
    guest_name: str | None = None
    guest_email: str | None = None
    current_payment_id: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    status_history: list[StatusChange] = Field(default_factory=list)

    @property
    def is_payable(self) -> bool:
        return self.status == OrderStatus.PENDING and self.payment_status == OrderPaymentStatus.UNPAID


class Payment(_Snapshot):
    id: str
    order_id: str
    status: PaymentStatus
    gateway: str | None = None
    transaction_ref: str | None = None
    idempotency_key: str
    checkout_url: str | None = None
    amount: float = 0.0
    currency: str = "GHS"
    failure_reason: str | None = None
    created_at: str | None = None
