"""Order and payment lifecycle tables shared by the store backend and the storefront core.

Order state machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    PENDING/CONFIRMED/PROCESSING → CANCELLED → REFUNDED

Payment state machine (one row per attempt):
    PENDING → SUCCESS → REFUNDED
    PENDING → FAILED | CANCELLED

Each order transition is additionally gated by a capability held by the actor.
The backend re-checks both conditions on every request; the storefront uses the
same tables only to decide what to offer.
"""

from enum import Enum


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class OrderPaymentStatus(Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

TERMINAL_ORDER_STATUSES = frozenset(status for status, targets in ORDER_TRANSITIONS.items() if not targets)

# Capability flag (attribute of shared.permissions.Capabilities) required to move
# an order INTO the given status.
TRANSITION_CAPABILITIES = {
    OrderStatus.CONFIRMED: "can_view_all_orders",
    OrderStatus.PROCESSING: "can_fulfill_orders",
    OrderStatus.SHIPPED: "can_fulfill_orders",
    OrderStatus.DELIVERED: "can_fulfill_orders",
    OrderStatus.CANCELLED: "can_cancel_orders",
    OrderStatus.REFUNDED: "can_process_refunds",
}

# Steps that have a dedicated one-step operation instead of the generic status call.
DEDICATED_STEPS = {
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): "fulfill",
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): "deliver",
}


def is_legal_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Return True when `target` is adjacent to `current` in the order state machine."""
    return target in ORDER_TRANSITIONS.get(current, set())


def required_capability(target: OrderStatus) -> str | None:
    return TRANSITION_CAPABILITIES.get(target)


def is_permitted(target: OrderStatus, capabilities) -> bool:
    """Check the capability gate for a target status (adjacency is not considered)."""
    flag = required_capability(target)
    return bool(flag) and bool(getattr(capabilities, flag, False))


def permitted_transitions(current: OrderStatus, capabilities) -> list[OrderStatus]:
    """Targets that are both adjacency-legal from `current` and capability-permitted.

    Returned in declaration order of OrderStatus so callers get a stable listing.
    """
    legal = ORDER_TRANSITIONS.get(current, set())
    return [status for status in OrderStatus if status in legal and is_permitted(status, capabilities)]


# ---------------------------------------------------------------------------
# Payment lifecycle
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.SUCCESS: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.CANCELLED: set(),
    PaymentStatus.REFUNDED: set(),
}

# Terminal for a single attempt: verification never moves these again.
TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED}
)

# Attempts that leave the order payable again through a new attempt.
RETRYABLE_PAYMENT_STATUSES = frozenset({PaymentStatus.FAILED, PaymentStatus.CANCELLED})
