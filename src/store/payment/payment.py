"""Payment aggregate: one row per payment attempt.

State Machine:
    PENDING → SUCCESS → REFUNDED
    PENDING → FAILED | CANCELLED

Attempts are append-only: retrying after FAILED opens a new Payment with a new
idempotency key, the failed row is never reused. Once an attempt is terminal,
verification leaves it untouched.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String
from shared.lifecycle import PAYMENT_TRANSITIONS, TERMINAL_PAYMENT_STATUSES, PaymentStatus

from store.domain import store
from store.payment.events import (
    PaymentCancelled,
    PaymentFailed,
    PaymentInitiated,
    PaymentRefunded,
    PaymentSucceeded,
)

# Gateway session outcome → payment status
GATEWAY_OUTCOMES = {
    "success": PaymentStatus.SUCCESS,
    "failed": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
}


@store.aggregate
class Payment:
    order_id = Identifier(required=True)
    user_id = Identifier()
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    gateway = String(max_length=50)
    transaction_ref = String(max_length=255)
    idempotency_key = String(required=True, max_length=255)
    checkout_url = String(max_length=1000)
    callback_url = String(max_length=1000)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="GHS")
    failure_reason = String(max_length=500)
    refund_reason = String(max_length=500)
    refunded_at = DateTime()
    verified_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(
        cls,
        order_id: str,
        amount: float,
        currency: str,
        idempotency_key: str,
        gateway: str,
        callback_url: str,
        user_id: str | None = None,
    ):
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            user_id=user_id,
            status=PaymentStatus.PENDING.value,
            gateway=gateway,
            idempotency_key=idempotency_key,
            callback_url=callback_url,
            amount=amount,
            currency=currency,
            created_at=now,
            updated_at=now,
        )

    def attach_checkout(self, transaction_ref: str, checkout_url: str) -> None:
        self.transaction_ref = transaction_ref
        self.checkout_url = checkout_url
        self.raise_(
            PaymentInitiated(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount,
                currency=self.currency,
                gateway=self.gateway,
                transaction_ref=transaction_ref,
                idempotency_key=self.idempotency_key,
                initiated_at=self.created_at,
            )
        )

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: PaymentStatus) -> None:
        current = PaymentStatus(self.status)
        if target_status not in PAYMENT_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def is_terminal(self) -> bool:
        return PaymentStatus(self.status) in TERMINAL_PAYMENT_STATUSES

    # -------------------------------------------------------------------
    # Verification outcomes
    # -------------------------------------------------------------------
    def record_gateway_outcome(self, outcome: str, failure_reason: str | None = None) -> bool:
        """Apply a gateway status pull. Returns True when the status changed.

        Terminal attempts and still-pending sessions are left as they are.
        """
        now = datetime.now(UTC)
        self.verified_at = now

        target = GATEWAY_OUTCOMES.get(outcome)
        if self.is_terminal or target is None:
            return False

        self._assert_can_transition(target)
        self.status = target.value
        self.updated_at = now

        if target == PaymentStatus.SUCCESS:
            self.failure_reason = None
            self.raise_(
                PaymentSucceeded(
                    payment_id=str(self.id),
                    order_id=str(self.order_id),
                    amount=self.amount,
                    transaction_ref=self.transaction_ref,
                    succeeded_at=now,
                )
            )
        elif target == PaymentStatus.FAILED:
            self.failure_reason = failure_reason or "Payment was declined"
            self.raise_(
                PaymentFailed(
                    payment_id=str(self.id),
                    order_id=str(self.order_id),
                    reason=self.failure_reason,
                    failed_at=now,
                )
            )
        else:
            self.failure_reason = failure_reason or "Payment was cancelled"
            self.raise_(PaymentCancelled(payment_id=str(self.id), order_id=str(self.order_id), cancelled_at=now))
        return True

    # -------------------------------------------------------------------
    # Refunds (operator-triggered)
    # -------------------------------------------------------------------
    def refund(self, reason: str) -> None:
        self._assert_can_transition(PaymentStatus.REFUNDED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.REFUNDED.value
        self.refund_reason = reason
        self.refunded_at = now
        self.updated_at = now
        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount,
                reason=reason,
                refunded_at=now,
            )
        )
