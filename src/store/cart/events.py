"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from store.domain import store


@store.event(part_of="Cart")
class CartItemAdded:
    __version__ = 1

    owner_key = Identifier(required=True)
    item_key = String(required=True, max_length=500)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    price_at_add = Float(required=True)


@store.event(part_of="Cart")
class CartItemQuantityUpdated:
    __version__ = 1

    owner_key = Identifier(required=True)
    item_key = String(required=True, max_length=500)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@store.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    owner_key = Identifier(required=True)
    item_key = String(required=True, max_length=500)


@store.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    owner_key = Identifier(required=True)
    items_cleared = Integer(required=True)
