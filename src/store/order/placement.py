"""Order placement: converts the owner's cart into a persisted order.

Prices are frozen from the cart lines. Stock is re-checked per product, summing
all of its variant lines, and the cart is emptied once the order exists.
Payment is a separate, later call.
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from store.cart.cart import Cart
from store.cart.items import assert_stock_available
from store.domain import logger, store
from store.order.order import Order

PAYMENT_METHODS = ("CARD", "MOBILE_MONEY")


@store.command(part_of="Order")
class PlaceOrder:
    owner_key = Identifier(required=True)
    user_id = Identifier()
    guest_name = String(max_length=255)
    guest_email = String(max_length=255)
    guest_phone = String(max_length=30)
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=30)
    notes = String(max_length=500)


@store.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        if command.payment_method not in PAYMENT_METHODS:
            raise ValidationError({"payment_method": ["Please select a payment method"]})

        cart_repo = current_domain.repository_for(Cart)
        try:
            cart = cart_repo.get(command.owner_key)
        except ObjectNotFoundError:
            raise ValidationError({"cart": ["Cannot place an order from an empty cart"]})
        if not cart.items:
            raise ValidationError({"cart": ["Cannot place an order from an empty cart"]})

        # Variant lines of one product draw on the same stock record
        demand = {}
        for line in cart.items:
            demand[str(line.product_id)] = demand.get(str(line.product_id), 0) + line.quantity
        for product_id, quantity in demand.items():
            assert_stock_available(product_id, quantity)

        items_data = []
        for line in cart.items:
            items_data.append(
                {
                    "product_id": str(line.product_id),
                    "item_key": line.item_key,
                    "product_name": line.product_name,
                    "selected_options": line.options(),
                    "quantity": line.quantity,
                    "price_at_order": line.price_at_add,
                }
            )

        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )
        order = Order.place(
            items_data=items_data,
            shipping_address=shipping_address,
            payment_method=command.payment_method,
            user_id=command.user_id,
            guest_name=command.guest_name,
            guest_email=command.guest_email,
            guest_phone=command.guest_phone,
            notes=command.notes,
            currency=cart.currency or "GHS",
        )
        current_domain.repository_for(Order).add(order)

        cart.clear()
        cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            owner_key=command.owner_key,
            total_amount=order.total_amount,
        )
        return str(order.id)
