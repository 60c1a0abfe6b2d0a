"""Payment verification: pull the gateway's view of an attempt.

Verification is safe to repeat: terminal attempts are returned unchanged and
the gateway is not asked again. A successful attempt marks its order paid and
confirms it in the same handler, so the order a caller re-fetches afterwards
already reflects the payment.
"""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain
from shared.lifecycle import PaymentStatus

from store.domain import logger, store
from store.errors import GatewayUnavailable
from store.gateway import get_gateway
from store.order.order import Order
from store.payment.payment import Payment


@store.command(part_of="Payment")
class VerifyPayment:
    payment_id = Identifier(required=True)


@store.command_handler(part_of=Payment)
class VerifyPaymentHandler:
    @handle(VerifyPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        if payment.is_terminal:
            logger.debug("Payment already settled", payment_id=str(payment.id), status=payment.status)
            return str(payment.id)

        try:
            result = get_gateway().fetch_status(payment.transaction_ref)
        except ConnectionError as exc:
            logger.warning("Payment gateway unreachable", payment_id=str(payment.id), error=str(exc))
            raise GatewayUnavailable("Could not reach the payment provider. Please check again shortly.") from exc

        changed = payment.record_gateway_outcome(result.status, result.failure_reason)
        repo.add(payment)

        if changed and payment.status == PaymentStatus.SUCCESS.value:
            order_repo = current_domain.repository_for(Order)
            order = order_repo.get(payment.order_id)
            order.record_payment_success(payment.id)
            order_repo.add(order)

        logger.info(
            "Payment verified",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            status=payment.status,
            changed=changed,
        )
        return str(payment.id)
