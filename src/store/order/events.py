"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String, Text

from store.domain import store


@store.event(part_of="Order")
class OrderPlaced:
    """An order was created from a cart; prices are frozen from here on."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier()
    guest_email = String(max_length=255)
    items = Text(required=True)  # JSON: list of item dicts
    total_amount = Float(required=True)
    currency = String(default="GHS")
    placed_at = DateTime(required=True)


@store.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    reason = String(max_length=500)
    changed_by = String(max_length=255)
    changed_at = DateTime(required=True)


@store.event(part_of="Order")
class OrderPaymentAttached:
    """A new payment attempt became the order's current payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    attached_at = DateTime(required=True)


@store.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    paid_at = DateTime(required=True)
