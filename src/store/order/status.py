"""Operator status changes: generic transition plus the dedicated fulfill/deliver steps.

Capabilities are re-derived from the acting principal's roles on every
command. Whatever the calling UI chose to offer is not trusted.
"""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from shared.lifecycle import DEDICATED_STEPS, OrderStatus, is_permitted, required_capability
from shared.permissions import capabilities_for

from store.domain import logger, store
from store.errors import Forbidden, InvalidTransition
from store.order.order import Order


@store.command(part_of="Order")
class ChangeOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    reason = String(max_length=500)
    actor_id = String(max_length=255)
    actor_roles = Text()  # JSON array of role names


@store.command(part_of="Order")
class FulfillOrder:
    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    actor_id = String(max_length=255)
    actor_roles = Text()


@store.command(part_of="Order")
class DeliverOrder:
    order_id = Identifier(required=True)
    actor_id = String(max_length=255)
    actor_roles = Text()


def _assert_permitted(command, target: OrderStatus) -> None:
    roles = json.loads(command.actor_roles) if command.actor_roles else []
    if not is_permitted(target, capabilities_for(roles)):
        logger.warning(
            "Rejected order status change",
            order_id=str(command.order_id),
            target=target.value,
            actor_id=command.actor_id,
            required=required_capability(target),
        )
        raise Forbidden(f"Missing capability {required_capability(target)} to move an order to {target.value}")


@store.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(ChangeOrderStatus)
    def change_status(self, command):
        try:
            target = OrderStatus(command.status)
        except ValueError:
            raise InvalidTransition({"status": [f"Unknown order status {command.status}"]})

        _assert_permitted(command, target)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        step = DEDICATED_STEPS.get((OrderStatus(order.status), target))
        if step is not None:
            raise InvalidTransition(
                {"status": [f"Moving an order from {order.status} to {target.value} requires the {step} action"]}
            )
        order.transition_to(target, reason=command.reason, changed_by=command.actor_id)
        repo.add(order)

    @handle(FulfillOrder)
    def fulfill(self, command):
        _assert_permitted(command, OrderStatus.SHIPPED)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.fulfill(
            tracking_number=command.tracking_number,
            carrier=command.carrier,
            changed_by=command.actor_id,
        )
        repo.add(order)

    @handle(DeliverOrder)
    def deliver(self, command):
        _assert_permitted(command, OrderStatus.DELIVERED)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.deliver(changed_by=command.actor_id)
        repo.add(order)
