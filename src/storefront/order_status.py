"""Operator-side order status actions.

Only transitions that are both adjacent in the order lifecycle and covered by
the operator's capabilities are offered. PROCESSING → SHIPPED and SHIPPED →
DELIVERED are offered only as the dedicated fulfill and deliver actions. The
store re-checks everything, so a refused request still ends in a notice.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from shared.lifecycle import DEDICATED_STEPS, OrderStatus, permitted_transitions
from shared.permissions import Capabilities

from storefront.api import StoreApiClient
from storefront.errors import ApiError, TransitionNotOffered
from storefront.models import Order
from storefront.notices import NoticeBoard, NoticeScope

logger = structlog.get_logger(__name__)


class ActionKind(Enum):
    TRANSITION = "TRANSITION"
    FULFILL = "FULFILL"
    DELIVER = "DELIVER"


LABELS = {
    OrderStatus.CONFIRMED: "Confirm Order",
    OrderStatus.PROCESSING: "Start Processing",
    OrderStatus.CANCELLED: "Cancel Order",
    OrderStatus.REFUNDED: "Mark Refunded",
}


@dataclass(frozen=True)
class OfferedAction:
    kind: ActionKind
    target: OrderStatus
    label: str


def offered_actions_for(status: OrderStatus, capabilities: Capabilities) -> list[OfferedAction]:
    actions = []
    for target in permitted_transitions(status, capabilities):
        step = DEDICATED_STEPS.get((status, target))
        if step == "fulfill":
            actions.append(OfferedAction(ActionKind.FULFILL, target, "Fulfill Order"))
        elif step == "deliver":
            actions.append(OfferedAction(ActionKind.DELIVER, target, "Mark as Delivered"))
        else:
            actions.append(OfferedAction(ActionKind.TRANSITION, target, LABELS.get(target, target.value.title())))
    return actions


class OrderStatusController:
    def __init__(self, api: StoreApiClient, capabilities: Capabilities, notices: NoticeBoard) -> None:
        self.api = api
        self.capabilities = capabilities
        self.notices = notices

    def offered_actions(self, order: Order) -> list[OfferedAction]:
        return offered_actions_for(order.status, self.capabilities)

    def _assert_offered(self, order: Order, kind: ActionKind, target: OrderStatus) -> None:
        if not any(a.kind == kind and a.target == target for a in self.offered_actions(order)):
            raise TransitionNotOffered(order.status.value, target.value)

    async def transition(self, order: Order, target: OrderStatus, reason: str | None = None) -> Order | None:
        self._assert_offered(order, ActionKind.TRANSITION, target)
        return await self._send(order, target, self.api.admin_change_status(order.id, target.value, reason))

    async def fulfill(
        self, order: Order, tracking_number: str | None = None, carrier: str | None = None
    ) -> Order | None:
        self._assert_offered(order, ActionKind.FULFILL, OrderStatus.SHIPPED)
        return await self._send(order, OrderStatus.SHIPPED, self.api.admin_fulfill(order.id, tracking_number, carrier))

    async def deliver(self, order: Order) -> Order | None:
        self._assert_offered(order, ActionKind.DELIVER, OrderStatus.DELIVERED)
        return await self._send(order, OrderStatus.DELIVERED, self.api.admin_deliver(order.id))

    async def _send(self, order: Order, target: OrderStatus, call) -> Order | None:
        try:
            updated = await call
        except ApiError as exc:
            logger.warning(
                "Order status change failed",
                order_id=order.id,
                target=target.value,
                error_code=exc.error_code,
            )
            self.notices.post(
                NoticeScope.ORDER,
                exc.user_message("Failed to update order status"),
                key=order.id,
                error_code=exc.error_code,
            )
            return None
        logger.info("Order status changed", order_id=order.id, previous=order.status.value, status=updated.status.value)
        return updated
