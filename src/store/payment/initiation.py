"""Payment initiation: command and handler.

Opens a payment attempt for an order at the redirect gateway. Initiation is
idempotent on the client-supplied key: a key the store has already seen
returns that attempt and the gateway is not contacted again.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from shared.lifecycle import PaymentStatus

from store.domain import logger, store
from store.errors import GatewayUnavailable, PaymentConflict
from store.gateway import get_gateway
from store.order.access import assert_order_access
from store.order.order import Order
from store.payment.payment import Payment


@store.command(part_of="Payment")
class InitiatePayment:
    """Open (or re-fetch) the payment attempt identified by `idempotency_key`."""

    order_id = Identifier(required=True)
    idempotency_key = String(required=True, max_length=255)
    callback_url = String(required=True, max_length=1000)
    user_id = Identifier()
    guest_email = String(max_length=255)


def find_by_idempotency_key(key: str) -> Payment | None:
    repo = current_domain.repository_for(Payment)
    matches = repo._dao.query.filter(idempotency_key=key).all().items
    return matches[0] if matches else None


def _assert_no_open_attempt(order: Order) -> None:
    if order.is_paid:
        raise PaymentConflict({"order": ["Order is already paid"]}, error_code="ORDER_ALREADY_PAID")
    if not order.current_payment_id:
        return

    current = current_domain.repository_for(Payment).get(order.current_payment_id)
    if current.status == PaymentStatus.PENDING.value:
        raise PaymentConflict({"payment": ["A payment for this order is already in progress"]})
    if current.status in (PaymentStatus.SUCCESS.value, PaymentStatus.REFUNDED.value):
        raise PaymentConflict({"order": ["Order is already paid"]}, error_code="ORDER_ALREADY_PAID")


@store.command_handler(part_of=Payment)
class InitiatePaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        assert_order_access(order, user_id=command.user_id, guest_email=command.guest_email)

        existing = find_by_idempotency_key(command.idempotency_key)
        if existing is not None:
            if str(existing.order_id) != str(command.order_id):
                raise ValidationError({"idempotency_key": ["Key already used for a different order"]})
            logger.info(
                "Payment initiation replayed",
                payment_id=str(existing.id),
                order_id=str(existing.order_id),
                idempotency_key=command.idempotency_key,
            )
            return str(existing.id)

        _assert_no_open_attempt(order)
        order.assert_payable()

        gateway = get_gateway()
        payment = Payment.open(
            order_id=str(order.id),
            amount=order.total_amount,
            currency=order.currency,
            idempotency_key=command.idempotency_key,
            gateway=gateway.name,
            callback_url=command.callback_url,
            user_id=order.user_id,
        )
        try:
            session = gateway.create_checkout(
                amount=payment.amount,
                currency=payment.currency,
                reference=str(payment.id),
                idempotency_key=payment.idempotency_key,
                callback_url=payment.callback_url,
            )
        except ConnectionError as exc:
            logger.warning("Payment gateway unreachable", order_id=str(order.id), error=str(exc))
            raise GatewayUnavailable("The payment provider is unavailable. Please try again.") from exc

        payment.attach_checkout(session.transaction_ref, session.checkout_url)
        current_domain.repository_for(Payment).add(payment)

        order.attach_payment(payment.id)
        order_repo.add(order)

        logger.info(
            "Payment initiated",
            payment_id=str(payment.id),
            order_id=str(order.id),
            gateway=gateway.name,
            amount=payment.amount,
        )
        return str(payment.id)
