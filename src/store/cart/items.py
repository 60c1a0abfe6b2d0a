"""Cart line commands and handler.

Quantities are checked against the product's StockRecord on every add and
update. The check is per line: variant lines of one product are each compared
to the same shared record.
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from store.cart.cart import Cart, owner_key_for
from store.catalogue.product import Product
from store.domain import store, logger
from store.inventory.stock import StockRecord


@store.command(part_of="Cart")
class AddCartItem:
    user_id = Identifier()
    guest_session = String(max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    selected_options = Text()  # JSON object


@store.command(part_of="Cart")
class UpdateCartItem:
    owner_key = Identifier(required=True)
    item_key = String(required=True, max_length=500)
    quantity = Integer(required=True, min_value=1)


@store.command(part_of="Cart")
class RemoveCartItem:
    owner_key = Identifier(required=True)
    item_key = String(required=True, max_length=500)


@store.command(part_of="Cart")
class ClearCart:
    owner_key = Identifier(required=True)


def assert_stock_available(product_id, quantity):
    try:
        record = current_domain.repository_for(StockRecord).get(str(product_id))
    except ObjectNotFoundError:
        logger.warning("No stock record for product, skipping stock check", product_id=str(product_id))
        return
    record.assert_can_fulfil(quantity)


@store.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddCartItem)
    def add_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        owner_key = owner_key_for(command.user_id, command.guest_session)
        try:
            cart = repo.get(owner_key)
        except ObjectNotFoundError:
            cart = Cart.create(user_id=command.user_id, guest_session=command.guest_session)

        product = current_domain.repository_for(Product).get(command.product_id)
        options = json.loads(command.selected_options) if command.selected_options else {}
        product.assert_options_selected(options)

        line = cart.add_item(
            product_id=command.product_id,
            product_name=product.name,
            unit_price=product.price,
            quantity=command.quantity,
            selected_options=options,
        )
        assert_stock_available(command.product_id, line.quantity)

        repo.add(cart)
        return owner_key

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.owner_key)
        cart.update_quantity(command.item_key, command.quantity)
        assert_stock_available(cart.line_for(command.item_key).product_id, command.quantity)
        repo.add(cart)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.owner_key)
        cart.remove_item(command.item_key)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        try:
            cart = repo.get(command.owner_key)
        except ObjectNotFoundError:
            return
        cart.clear()
        repo.add(cart)
