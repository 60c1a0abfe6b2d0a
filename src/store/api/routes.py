"""FastAPI routes for the store: inventory, cart, orders, payments and admin."""

import json

from fastapi import APIRouter, Body, Depends
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from store.api.envelope import ok
from store.api.principal import Principal, authenticated_principal, current_principal
from store.api.schemas import (
    AddCartItemRequest,
    ChangeOrderStatusRequest,
    FulfillOrderRequest,
    InitiatePaymentRequest,
    PlaceGuestOrderRequest,
    PlaceOrderRequest,
    RefundPaymentRequest,
    RegisterProductRequest,
    SetStockLevelsRequest,
    UpdateCartItemRequest,
    cart_view,
    order_view,
    payment_view,
    stock_view,
)
from store.cart.cart import Cart
from store.cart.items import AddCartItem, ClearCart, RemoveCartItem, UpdateCartItem
from store.catalogue.product import RegisterProduct
from store.errors import Forbidden
from store.inventory.adjustment import AdjustStock, SetStockLevels
from store.inventory.stock import StockRecord
from store.order.access import assert_order_access
from store.order.order import Order
from store.order.placement import PlaceOrder
from store.order.status import ChangeOrderStatus, DeliverOrder, FulfillOrder
from store.payment.initiation import InitiatePayment
from store.payment.payment import Payment
from store.payment.refund import RefundPayment
from store.payment.verification import VerifyPayment


def _load_cart(owner_key: str):
    try:
        return current_domain.repository_for(Cart).get(owner_key)
    except ObjectNotFoundError:
        return None


def _require(principal: Principal, capability: str) -> None:
    if not getattr(principal.capabilities, capability):
        raise Forbidden(f"Missing capability {capability}")


def _payments_for_order(order_id: str) -> list:
    repo = current_domain.repository_for(Payment)
    payments = repo._dao.query.filter(order_id=order_id).all().items
    return sorted(payments, key=lambda payment: payment.created_at)


def _accessible_order(order_id: str, principal: Principal, guest_email: str | None = None):
    order = current_domain.repository_for(Order).get(order_id)
    assert_order_access(
        order,
        user_id=principal.user_id,
        guest_email=guest_email or principal.guest_email,
        capabilities=principal.capabilities,
    )
    return order


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/store/inventory", tags=["inventory"])


@inventory_router.post("/batch")
async def inventory_batch(product_ids: list[str] = Body(default_factory=list)) -> dict:
    """Stock records for a JSON array of product ids; unknown products are omitted."""
    repo = current_domain.repository_for(StockRecord)
    records = []
    for product_id in dict.fromkeys(product_ids):
        try:
            records.append(stock_view(repo.get(product_id)))
        except ObjectNotFoundError:
            continue
    return ok(records)


@inventory_router.get("/{product_id}")
async def get_inventory(product_id: str) -> dict:
    record = current_domain.repository_for(StockRecord).get(product_id)
    return ok(stock_view(record))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/store/cart", tags=["cart"])


@cart_router.get("")
async def get_cart(principal: Principal = Depends(current_principal)) -> dict:
    return ok(cart_view(_load_cart(principal.owner_key)))


@cart_router.post("/items")
async def add_cart_item(body: AddCartItemRequest, principal: Principal = Depends(current_principal)) -> dict:
    command = AddCartItem(
        user_id=principal.user_id,
        guest_session=None if principal.user_id else principal.guest_session,
        product_id=body.product_id,
        quantity=body.quantity,
        selected_options=json.dumps(body.selected_options),
    )
    owner_key = current_domain.process(command, asynchronous=False)
    return ok(cart_view(_load_cart(owner_key)), "Item added to cart")


@cart_router.put("/items/{item_key}")
async def update_cart_item(
    item_key: str, body: UpdateCartItemRequest, principal: Principal = Depends(current_principal)
) -> dict:
    command = UpdateCartItem(owner_key=principal.owner_key, item_key=item_key, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return ok(cart_view(_load_cart(principal.owner_key)), "Cart updated")


@cart_router.delete("/items/{item_key}")
async def remove_cart_item(item_key: str, principal: Principal = Depends(current_principal)) -> dict:
    command = RemoveCartItem(owner_key=principal.owner_key, item_key=item_key)
    current_domain.process(command, asynchronous=False)
    return ok(cart_view(_load_cart(principal.owner_key)), "Item removed from cart")


@cart_router.post("/clear")
async def clear_cart(principal: Principal = Depends(current_principal)) -> dict:
    current_domain.process(ClearCart(owner_key=principal.owner_key), asynchronous=False)
    return ok(cart_view(_load_cart(principal.owner_key)), "Cart cleared")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/store/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def place_order(body: PlaceOrderRequest, principal: Principal = Depends(authenticated_principal)) -> dict:
    command = PlaceOrder(
        owner_key=principal.owner_key,
        user_id=principal.user_id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        payment_method=body.payment_method,
        notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return ok(order_view(current_domain.repository_for(Order).get(order_id)), "Order placed")


@order_router.post("/guest", status_code=201)
async def place_guest_order(
    body: PlaceGuestOrderRequest, principal: Principal = Depends(current_principal)
) -> dict:
    if not principal.guest_session:
        raise ValidationError({"guest_session": ["A guest session is required for guest checkout"]})
    command = PlaceOrder(
        owner_key=f"guest:{principal.guest_session}",
        guest_name=body.guest_name,
        guest_email=body.guest_email,
        guest_phone=body.guest_phone,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        payment_method=body.payment_method,
        notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return ok(order_view(current_domain.repository_for(Order).get(order_id)), "Order placed")


@order_router.get("/{order_id}")
async def get_order(order_id: str, principal: Principal = Depends(current_principal)) -> dict:
    return ok(order_view(_accessible_order(order_id, principal)))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/store/payments", tags=["payments"])


@payment_router.post("/guest/{order_id}/initiate", status_code=201)
async def initiate_guest_payment(
    order_id: str, body: InitiatePaymentRequest, principal: Principal = Depends(current_principal)
) -> dict:
    command = InitiatePayment(
        order_id=order_id,
        idempotency_key=body.idempotency_key,
        callback_url=body.callback_url,
        guest_email=body.guest_email or principal.guest_email,
    )
    payment_id = current_domain.process(command, asynchronous=False)
    return ok(payment_view(current_domain.repository_for(Payment).get(payment_id)), "Payment initiated")


@payment_router.post("/{order_id}/initiate", status_code=201)
async def initiate_payment(
    order_id: str, body: InitiatePaymentRequest, principal: Principal = Depends(authenticated_principal)
) -> dict:
    command = InitiatePayment(
        order_id=order_id,
        idempotency_key=body.idempotency_key,
        callback_url=body.callback_url,
        user_id=principal.user_id,
    )
    payment_id = current_domain.process(command, asynchronous=False)
    return ok(payment_view(current_domain.repository_for(Payment).get(payment_id)), "Payment initiated")


@payment_router.get("/{payment_id}/verify")
async def verify_payment(payment_id: str, principal: Principal = Depends(current_principal)) -> dict:
    payment = current_domain.repository_for(Payment).get(payment_id)
    _accessible_order(str(payment.order_id), principal)

    current_domain.process(VerifyPayment(payment_id=payment_id), asynchronous=False)
    return ok(payment_view(current_domain.repository_for(Payment).get(payment_id)))


@payment_router.get("/order/{order_id}")
async def current_payment(order_id: str, principal: Principal = Depends(current_principal)) -> dict:
    """The order's current attempt, or null when no payment was initiated yet."""
    order = _accessible_order(order_id, principal)
    if not order.current_payment_id:
        return ok(None, "No payment for this order")
    return ok(payment_view(current_domain.repository_for(Payment).get(order.current_payment_id)))


@payment_router.get("/order/{order_id}/history")
async def payment_history(order_id: str, principal: Principal = Depends(current_principal)) -> dict:
    _accessible_order(order_id, principal)
    return ok([payment_view(payment) for payment in _payments_for_order(order_id)])


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders/{order_id}")
async def admin_get_order(order_id: str, principal: Principal = Depends(authenticated_principal)) -> dict:
    _require(principal, "can_view_all_orders")
    return ok(order_view(current_domain.repository_for(Order).get(order_id)))


@admin_router.put("/orders/{order_id}/status")
async def admin_change_status(
    order_id: str, body: ChangeOrderStatusRequest, principal: Principal = Depends(authenticated_principal)
) -> dict:
    command = ChangeOrderStatus(
        order_id=order_id,
        status=body.status,
        reason=body.reason,
        actor_id=principal.user_id,
        actor_roles=json.dumps(list(principal.roles)),
    )
    current_domain.process(command, asynchronous=False)
    return ok(order_view(current_domain.repository_for(Order).get(order_id)), "Order status updated")


@admin_router.put("/orders/{order_id}/fulfill")
async def admin_fulfill(
    order_id: str, body: FulfillOrderRequest, principal: Principal = Depends(authenticated_principal)
) -> dict:
    command = FulfillOrder(
        order_id=order_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        actor_id=principal.user_id,
        actor_roles=json.dumps(list(principal.roles)),
    )
    current_domain.process(command, asynchronous=False)
    return ok(order_view(current_domain.repository_for(Order).get(order_id)), "Order fulfilled")


@admin_router.put("/orders/{order_id}/deliver")
async def admin_deliver(order_id: str, principal: Principal = Depends(authenticated_principal)) -> dict:
    command = DeliverOrder(
        order_id=order_id,
        actor_id=principal.user_id,
        actor_roles=json.dumps(list(principal.roles)),
    )
    current_domain.process(command, asynchronous=False)
    return ok(order_view(current_domain.repository_for(Order).get(order_id)), "Order delivered")


@admin_router.put("/inventory/{product_id}")
async def admin_set_stock(
    product_id: str, body: SetStockLevelsRequest, principal: Principal = Depends(authenticated_principal)
) -> dict:
    _require(principal, "can_adjust_inventory")
    if body.adjustment is not None:
        command = AdjustStock(product_id=product_id, adjustment=body.adjustment, reason=body.reason)
    elif body.stock_quantity is not None:
        command = SetStockLevels(
            product_id=product_id,
            stock_quantity=body.stock_quantity,
            reserved_quantity=body.reserved_quantity or 0,
            low_stock_threshold=body.low_stock_threshold if body.low_stock_threshold is not None else 5,
            reason=body.reason,
        )
    else:
        raise ValidationError({"stock_quantity": ["Provide a stock quantity or an adjustment"]})
    current_domain.process(command, asynchronous=False)
    return ok(stock_view(current_domain.repository_for(StockRecord).get(product_id)), "Stock updated")


@admin_router.post("/products", status_code=201)
async def admin_register_product(
    body: RegisterProductRequest, principal: Principal = Depends(authenticated_principal)
) -> dict:
    _require(principal, "can_adjust_inventory")
    command = RegisterProduct(
        product_id=body.product_id,
        name=body.name,
        price=body.price,
        currency=body.currency,
        required_options=json.dumps(body.required_options),
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ok({"productId": product_id}, "Product registered")


@admin_router.post("/payments/{payment_id}/refund")
async def admin_refund_payment(
    payment_id: str, body: RefundPaymentRequest, principal: Principal = Depends(authenticated_principal)
) -> dict:
    command = RefundPayment(
        payment_id=payment_id,
        reason=body.reason,
        actor_id=principal.user_id,
        actor_roles=json.dumps(list(principal.roles)),
    )
    current_domain.process(command, asynchronous=False)
    return ok(payment_view(current_domain.repository_for(Payment).get(payment_id)), "Payment refunded")
