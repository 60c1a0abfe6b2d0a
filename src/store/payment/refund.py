"""Operator refunds for settled payments.

Refunding is outside the shopper's payment protocol. A refund of the order's
current payment also moves a CANCELLED order to REFUNDED.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from shared.lifecycle import OrderStatus, PaymentStatus
from shared.permissions import capabilities_for

from store.domain import logger, store
from store.errors import Forbidden
from store.gateway import get_gateway
from store.order.order import Order
from store.payment.payment import Payment


@store.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    actor_id = String(max_length=255)
    actor_roles = Text()  # JSON array of role names


@store.command_handler(part_of=Payment)
class RefundPaymentHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        roles = json.loads(command.actor_roles) if command.actor_roles else []
        if not capabilities_for(roles).can_process_refunds:
            raise Forbidden("Missing capability can_process_refunds")

        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        if payment.status != PaymentStatus.SUCCESS.value:
            raise ValidationError({"payment": [f"Payments in {payment.status} state cannot be refunded"]})

        result = get_gateway().refund(payment.transaction_ref, payment.amount, command.reason)
        if not result.success:
            raise ValidationError({"payment": [result.failure_reason or "Refund was declined"]})

        payment.refund(command.reason)
        repo.add(payment)

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(payment.order_id)
        if (
            str(order.current_payment_id) == str(payment.id)
            and OrderStatus(order.status) == OrderStatus.CANCELLED
        ):
            order.transition_to(OrderStatus.REFUNDED, reason=command.reason, changed_by=command.actor_id)
            order_repo.add(order)

        logger.info(
            "Payment refunded",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            actor_id=command.actor_id,
        )
        return str(payment.id)
