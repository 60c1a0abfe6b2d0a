"""Order aggregate: created once from a cart, then only transitioned.

State Machine (see shared.lifecycle):
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    PENDING/CONFIRMED/PROCESSING → CANCELLED → REFUNDED

Orders are never deleted. The aggregate also carries the pointer to its current
payment attempt, so "which payment counts" is decided here rather than by
sorting attempts on creation time.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject
from shared.lifecycle import ORDER_TRANSITIONS, OrderPaymentStatus, OrderStatus

from store.domain import store
from store.errors import InvalidTransition
from store.order.events import OrderPaid, OrderPaymentAttached, OrderPlaced, OrderStatusChanged

SYSTEM_ACTOR = "system"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@store.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address captured at checkout; immutable once on the order."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    region = String(required=True, max_length=100)
    country = String(required=True, max_length=100)
    postal_code = String(max_length=20)
    phone = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@store.entity(part_of="Order")
class OrderItem:
    """A line frozen at placement; later catalogue price changes do not affect it."""

    product_id = Identifier(required=True)
    item_key = String(required=True, max_length=500)
    product_name = String(max_length=255)
    selected_options = Text()  # JSON object
    quantity = Integer(required=True, min_value=1)
    price_at_order = Float(required=True, min_value=0.0)

    @property
    def subtotal(self) -> float:
        return round(self.price_at_order * self.quantity, 2)


@store.entity(part_of="Order")
class StatusChange:
    status = String(required=True, max_length=20)
    reason = String(max_length=500)
    changed_by = String(max_length=255)
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@store.aggregate
class Order:
    user_id = Identifier()
    guest_name = String(max_length=255)
    guest_email = String(max_length=255)
    guest_phone = String(max_length=30)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=OrderPaymentStatus, default=OrderPaymentStatus.UNPAID.value)
    items = HasMany(OrderItem)
    status_history = HasMany(StatusChange)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(max_length=30)
    notes = String(max_length=500)
    total_amount = Float(default=0.0)
    currency = String(max_length=3, default="GHS")
    current_payment_id = Identifier()
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        items_data,
        shipping_address,
        payment_method,
        user_id=None,
        guest_name=None,
        guest_email=None,
        guest_phone=None,
        notes=None,
        currency="GHS",
    ):
        """Create a PENDING, UNPAID order.

        Args:
            items_data: List of dicts with product_id, item_key, product_name,
                        selected_options (dict), quantity, price_at_order.
            shipping_address: Dict with street, city, region, country and
                              optional postal_code, phone.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if not user_id and not (guest_name and guest_email):
            raise ValidationError({"guest": ["Guest name and email are required for guest checkout"]})

        now = datetime.now(UTC)
        order = cls(
            user_id=user_id,
            guest_name=None if user_id else guest_name,
            guest_email=None if user_id else guest_email,
            guest_phone=None if user_id else guest_phone,
            status=OrderStatus.PENDING.value,
            payment_status=OrderPaymentStatus.UNPAID.value,
            shipping_address=ShippingAddress(**shipping_address),
            payment_method=payment_method,
            notes=notes,
            currency=currency,
            created_at=now,
            updated_at=now,
        )
        for item in items_data:
            order.add_items(
                OrderItem(
                    product_id=item["product_id"],
                    item_key=item["item_key"],
                    product_name=item.get("product_name"),
                    selected_options=json.dumps(item.get("selected_options") or {}, sort_keys=True),
                    quantity=item["quantity"],
                    price_at_order=item["price_at_order"],
                )
            )
        order.total_amount = round(sum(item.subtotal for item in order.items), 2)
        order.add_status_history(
            StatusChange(
                status=OrderStatus.PENDING.value,
                reason="Order placed",
                changed_by=SYSTEM_ACTOR,
                changed_at=now,
            )
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id) if user_id else None,
                guest_email=order.guest_email,
                items=json.dumps(items_data),
                total_amount=order.total_amount,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in ORDER_TRANSITIONS.get(current, set()):
            raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def transition_to(self, target_status: OrderStatus, reason=None, changed_by=None) -> None:
        """Move to an adjacent status and record it in the status history."""
        self._assert_can_transition(target_status)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self.add_status_history(
            StatusChange(status=target_status.value, reason=reason, changed_by=changed_by, changed_at=now)
        )

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=previous,
                to_status=target_status.value,
                reason=reason,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Dedicated fulfillment steps
    # -------------------------------------------------------------------
    def fulfill(self, tracking_number=None, carrier=None, changed_by=None) -> None:
        """PROCESSING → SHIPPED, capturing shipment details."""
        if OrderStatus(self.status) != OrderStatus.PROCESSING:
            raise InvalidTransition({"status": ["Only processing orders can be fulfilled"]})
        self.tracking_number = tracking_number
        self.carrier = carrier
        self.transition_to(OrderStatus.SHIPPED, reason="Order fulfilled", changed_by=changed_by)

    def deliver(self, changed_by=None) -> None:
        """SHIPPED → DELIVERED."""
        if OrderStatus(self.status) != OrderStatus.SHIPPED:
            raise InvalidTransition({"status": ["Only shipped orders can be marked delivered"]})
        self.transition_to(OrderStatus.DELIVERED, reason="Order delivered", changed_by=changed_by)

    # -------------------------------------------------------------------
    # Payment side effects
    # -------------------------------------------------------------------
    @property
    def is_paid(self) -> bool:
        return self.payment_status == OrderPaymentStatus.PAID.value

    def assert_payable(self) -> None:
        if self.is_paid:
            raise ValidationError({"order": ["Order is already paid"]})
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"order": [f"Orders in {self.status} state cannot be paid"]})

    def attach_payment(self, payment_id) -> None:
        """Point the order at a new payment attempt."""
        self.assert_payable()
        now = datetime.now(UTC)
        self.current_payment_id = payment_id
        self.updated_at = now
        self.raise_(OrderPaymentAttached(order_id=str(self.id), payment_id=str(payment_id), attached_at=now))

    def record_payment_success(self, payment_id) -> None:
        """Mark the order paid; a PENDING order is confirmed by the system."""
        if self.is_paid:
            return

        now = datetime.now(UTC)
        self.payment_status = OrderPaymentStatus.PAID.value
        self.current_payment_id = payment_id
        self.updated_at = now
        self.raise_(OrderPaid(order_id=str(self.id), payment_id=str(payment_id), paid_at=now))

        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.transition_to(OrderStatus.CONFIRMED, reason="Payment received", changed_by=SYSTEM_ACTOR)
