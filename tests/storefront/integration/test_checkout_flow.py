"""Storefront sessions driving the store API in-process, from cart to delivery."""

import httpx
import pytest
from protean import current_domain
from shared.lifecycle import OrderPaymentStatus, OrderStatus, PaymentStatus
from store.api.app import create_app
from store.inventory.adjustment import SetStockLevels
from storefront.api import Credentials
from storefront.config import StorefrontSettings
from storefront.errors import ValidationError
from storefront.inventory import StockBand
from storefront.notices import NoticeScope
from storefront.order_status import ActionKind
from storefront.payment import PaymentAction
from storefront.session import StorefrontSession

SHIPPING = {"street": "12 Ring Road", "city": "Accra", "region": "Greater Accra", "country": "Ghana"}


@pytest.fixture
def transport():
    return httpx.ASGITransport(app=create_app())


@pytest.fixture
def settings():
    return StorefrontSettings(api_url="http://store.test", return_base="https://shop.test")


@pytest.fixture
def shopper(settings, transport):
    return StorefrontSession(settings, Credentials(user_id="shopper-1", roles=("ROLE_USER",)), transport=transport)


@pytest.fixture
def operator(settings, transport):
    return StorefrontSession(settings, Credentials(user_id="ops-1", roles=("ROLE_WAREHOUSE",)), transport=transport)


@pytest.fixture
def catalogue(register_product):
    register_product("prod-tee", name="Kente Tee", price=50.0, stock=3)
    register_product("prod-cap", name="Batik Cap", price=20.0, required_options=["color"], stock=10)


@pytest.mark.asyncio
async def test_cart_to_delivered_order(shopper, operator, catalogue, fake_gateway):
    await shopper.cart.add_item("prod-tee", 2)
    with pytest.raises(ValidationError):
        await shopper.cart.add_item("prod-cap", required_options=("color",))
    await shopper.cart.add_item("prod-cap", selected_options={"color": "red"}, required_options=("color",))

    cart = await shopper.cart.load()
    assert cart.item_count == 3
    await shopper.cart.availability_task
    assert shopper.cart.availability.band("prod-tee") == StockBand.LOW_STOCK
    assert shopper.cart.stock_warnings() == []

    result = await shopper.checkout.place_order(cart, SHIPPING)
    assert result.redirect is not None
    payment = shopper.payments.payments[result.redirect.payment_id]

    return_url = fake_gateway.complete(payment.transaction_ref, "success")
    assert return_url.startswith(f"https://shop.test/orders/{result.order_id}?verify=true")

    state = await shopper.payments.handle_return(result.order_id, dict(httpx.URL(return_url).params))
    assert state.verified
    assert state.payment.status == PaymentStatus.SUCCESS
    assert state.order.payment_status == OrderPaymentStatus.PAID
    assert state.order.status == OrderStatus.CONFIRMED
    assert state.action == PaymentAction.NONE
    assert (await shopper.cart.load()).is_empty

    order = await operator.api.admin_get_order(result.order_id)
    assert [a.kind for a in operator.order_status.offered_actions(order)] == [ActionKind.TRANSITION]
    order = await operator.order_status.transition(order, OrderStatus.PROCESSING)
    order = await operator.order_status.fulfill(order, tracking_number="TRK-1", carrier="DHL")
    order = await operator.order_status.deliver(order)

    assert order.status == OrderStatus.DELIVERED
    assert [change.status for change in order.status_history][-1] == OrderStatus.DELIVERED
    assert operator.order_status.offered_actions(order) == []


@pytest.mark.asyncio
async def test_declined_payment_can_be_retried(shopper, catalogue, fake_gateway):
    await shopper.cart.add_item("prod-tee", 1)
    result = await shopper.checkout.place_order(shopper.cart.cart, SHIPPING)
    first = shopper.payments.payments[result.redirect.payment_id]

    return_url = fake_gateway.complete(first.transaction_ref, "failed", failure_reason="Card declined")
    state = await shopper.payments.handle_return(result.order_id, dict(httpx.URL(return_url).params))
    assert state.payment.status == PaymentStatus.FAILED
    assert state.action == PaymentAction.RETRY_PAYMENT

    retry = await shopper.payments.retry(result.order_id, shopper.settings.order_return_url(result.order_id))
    assert retry.payment_id != first.id
    assert retry.idempotency_key != first.idempotency_key
    assert fake_gateway.charges == 2


@pytest.mark.asyncio
async def test_resubmitted_initiation_opens_one_charge(shopper, catalogue, fake_gateway):
    await shopper.cart.add_item("prod-tee", 1)
    result = await shopper.checkout.place_order(shopper.cart.cart, SHIPPING)

    again = await shopper.payments.initiate(result.order_id, shopper.settings.order_return_url(result.order_id))

    assert again.payment_id == result.redirect.payment_id
    assert fake_gateway.charges == 1


@pytest.mark.asyncio
async def test_order_refused_when_stock_ran_out(shopper, catalogue):
    await shopper.cart.add_item("prod-tee", 3)
    current_domain.process(
        SetStockLevels(product_id="prod-tee", stock_quantity=3, reserved_quantity=2),
        asynchronous=False,
    )

    assert await shopper.checkout.place_order(shopper.cart.cart, SHIPPING) is None
    notice = shopper.notices.latest(NoticeScope.ORDER)
    assert notice.error_code == "INSUFFICIENT_STOCK"
    assert notice.blocking
