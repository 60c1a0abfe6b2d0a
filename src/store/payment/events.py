"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from store.domain import store


@store.event(part_of="Payment")
class PaymentInitiated:
    """A new payment attempt was opened at the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    gateway = String(required=True)
    transaction_ref = String(required=True)
    idempotency_key = String(required=True)
    initiated_at = DateTime(required=True)


@store.event(part_of="Payment")
class PaymentSucceeded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    transaction_ref = String(required=True)
    succeeded_at = DateTime(required=True)


@store.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@store.event(part_of="Payment")
class PaymentCancelled:
    """The shopper or the gateway aborted the hosted checkout."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)


@store.event(part_of="Payment")
class PaymentRefunded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(required=True)
    refunded_at = DateTime(required=True)
