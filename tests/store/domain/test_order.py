import pytest
from protean.exceptions import ValidationError
from shared.lifecycle import OrderPaymentStatus, OrderStatus
from store.errors import InvalidTransition
from store.order.events import OrderPaid, OrderPlaced, OrderStatusChanged
from store.order.order import SYSTEM_ACTOR, Order

SHIPPING = {"street": "12 Oxford St", "city": "Accra", "region": "Greater Accra", "country": "Ghana"}


def _make_order(**overrides):
    defaults = {
        "items_data": [
            {
                "product_id": "prod-1",
                "item_key": "prod-1-{}",
                "product_name": "Tee",
                "selected_options": {},
                "quantity": 2,
                "price_at_order": 50.0,
            }
        ],
        "shipping_address": SHIPPING,
        "payment_method": "CARD",
        "user_id": "user-1",
    }
    defaults.update(overrides)
    return Order.place(**defaults)


def _order_in(status: OrderStatus) -> Order:
    order = _make_order()
    path = {
        OrderStatus.PENDING: [],
        OrderStatus.CONFIRMED: [OrderStatus.CONFIRMED],
        OrderStatus.PROCESSING: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING],
        OrderStatus.SHIPPED: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED],
        OrderStatus.DELIVERED: [
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ],
        OrderStatus.CANCELLED: [OrderStatus.CANCELLED],
        OrderStatus.REFUNDED: [OrderStatus.CANCELLED, OrderStatus.REFUNDED],
    }[status]
    for step in path:
        order.transition_to(step, changed_by="op-1")
    return order


class TestOrderPlacement:
    def test_new_order_is_pending_and_unpaid(self):
        order = _make_order()

        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == OrderPaymentStatus.UNPAID.value
        assert order.total_amount == 100.0
        assert order.status_history[0].changed_by == SYSTEM_ACTOR
        assert isinstance(order._events[-1], OrderPlaced)

    def test_requires_items(self):
        with pytest.raises(ValidationError):
            _make_order(items_data=[])

    def test_guest_needs_name_and_email(self):
        with pytest.raises(ValidationError):
            _make_order(user_id=None, guest_name="Ama")

    def test_guest_order(self):
        order = _make_order(user_id=None, guest_name="Ama", guest_email="ama@example.com")
        assert order.user_id is None
        assert order.guest_email == "ama@example.com"

    def test_shipping_requires_region(self):
        with pytest.raises(ValidationError):
            _make_order(shipping_address={"street": "1", "city": "Accra", "country": "Ghana"})


class TestOrderTransitions:
    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_illegal_targets_rejected(self, status):
        from shared.lifecycle import is_legal_transition

        for target in OrderStatus:
            if is_legal_transition(status, target):
                continue
            order = _order_in(status)
            with pytest.raises(InvalidTransition):
                order.transition_to(target)

    def test_transition_records_history_and_event(self):
        order = _make_order()
        order.transition_to(OrderStatus.CANCELLED, reason="Customer request", changed_by="op-7")

        last = order.status_history[-1]
        assert last.status == "CANCELLED"
        assert last.reason == "Customer request"
        assert last.changed_by == "op-7"
        event = order._events[-1]
        assert isinstance(event, OrderStatusChanged)
        assert event.from_status == "PENDING"

    def test_fulfill_captures_tracking(self):
        order = _order_in(OrderStatus.PROCESSING)
        order.fulfill(tracking_number="TRK-1", carrier="DHL", changed_by="wh-1")

        assert order.status == OrderStatus.SHIPPED.value
        assert order.tracking_number == "TRK-1"
        assert order.carrier == "DHL"

    def test_fulfill_only_from_processing(self):
        with pytest.raises(InvalidTransition):
            _order_in(OrderStatus.CONFIRMED).fulfill(tracking_number="TRK-1")

    def test_deliver_only_from_shipped(self):
        with pytest.raises(InvalidTransition):
            _order_in(OrderStatus.PROCESSING).deliver()
        order = _order_in(OrderStatus.SHIPPED)
        order.deliver(changed_by="wh-1")
        assert order.status == OrderStatus.DELIVERED.value


class TestOrderPayment:
    def test_attach_payment_moves_the_pointer(self):
        order = _make_order()
        order.attach_payment("pay-1")
        order.attach_payment("pay-2")
        assert order.current_payment_id == "pay-2"

    def test_cannot_attach_to_confirmed_order(self):
        order = _order_in(OrderStatus.CONFIRMED)
        with pytest.raises(ValidationError):
            order.attach_payment("pay-1")

    def test_payment_success_confirms_pending_order(self):
        order = _make_order()
        order.attach_payment("pay-1")
        order.record_payment_success("pay-1")

        assert order.is_paid
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.status_history[-1].changed_by == SYSTEM_ACTOR
        assert any(isinstance(e, OrderPaid) for e in order._events)

    def test_payment_success_is_recorded_once(self):
        order = _make_order()
        order.record_payment_success("pay-1")
        events_before = len(order._events)
        order.record_payment_success("pay-1")
        assert len(order._events) == events_before
