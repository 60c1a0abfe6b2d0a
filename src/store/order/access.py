"""Who may see or pay for an order."""

from shared.permissions import Capabilities

from store.errors import Forbidden


def assert_order_access(order, user_id=None, guest_email=None, capabilities: Capabilities | None = None) -> None:
    """Owners, the guest who placed it, and order-management operators."""
    if capabilities is not None and capabilities.can_view_all_orders:
        return
    if order.user_id and user_id and str(order.user_id) == str(user_id):
        return
    if not order.user_id and guest_email and order.guest_email:
        if order.guest_email.strip().lower() == guest_email.strip().lower():
            return
    raise Forbidden("You do not have access to this order")
