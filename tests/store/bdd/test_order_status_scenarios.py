"""BDD tests for operator order status changes."""

import json

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when
from store.cart.items import AddCartItem
from store.errors import Forbidden, InvalidTransition
from store.order.order import Order
from store.order.placement import PlaceOrder
from store.order.status import ChangeOrderStatus, FulfillOrder

scenarios("features/order_status.feature")

SHIPPING = {"street": "12 Oxford St", "city": "Accra", "region": "Greater Accra", "country": "Ghana"}


@pytest.fixture
def outcome():
    return {}


def _actor(role):
    return f"op-{role.lower()}"


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending order placed by a shopper", target_fixture="order_id")
def _(register_product):
    register_product()
    current_domain.process(AddCartItem(user_id="user-1", product_id="prod-tee", quantity=1))
    return current_domain.process(
        PlaceOrder(
            owner_key="user:user-1",
            user_id="user-1",
            shipping_address=json.dumps(SHIPPING),
            payment_method="CARD",
        )
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('a "{role}" operator moves the order to "{status}"'))
def _(order_id, outcome, role, status):
    outcome.clear()
    try:
        current_domain.process(
            ChangeOrderStatus(
                order_id=order_id,
                status=status,
                reason="Operator action",
                actor_id=_actor(role),
                actor_roles=json.dumps([role]),
            )
        )
        outcome["actor"] = _actor(role)
    except (Forbidden, InvalidTransition) as exc:
        outcome["error"] = exc


@when(parsers.cfparse('a "{role}" operator fulfils the order with tracking "{tracking}" via "{carrier}"'))
def _(order_id, outcome, role, tracking, carrier):
    current_domain.process(
        FulfillOrder(
            order_id=order_id,
            tracking_number=tracking,
            carrier=carrier,
            actor_id=_actor(role),
            actor_roles=json.dumps([role]),
        )
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).status == status


@then("the last history entry was made by the operator")
def _(order_id, outcome):
    order = current_domain.repository_for(Order).get(order_id)
    history = sorted(order.status_history, key=lambda change: change.changed_at)
    assert history[-1].changed_by == outcome["actor"]


@then("the change is refused as forbidden")
def _(outcome):
    assert isinstance(outcome.get("error"), Forbidden)


@then("the change is refused as an invalid transition")
def _(outcome):
    assert isinstance(outcome.get("error"), InvalidTransition)


@then(parsers.cfparse('the order carries tracking "{tracking}"'))
def _(order_id, tracking):
    assert current_domain.repository_for(Order).get(order_id).tracking_number == tracking
