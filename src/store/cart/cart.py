"""Cart aggregate (CQRS): the server-owned cart a storefront mirrors.

One cart per owner. The owner key is ``user:<id>`` for signed-in shoppers and
``guest:<session>`` for guests. Lines are unique by item key (product id plus
serialized option selection), so two variants of one product are separate lines.
The cart is created implicitly on first add and emptied when an order is placed.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text
from shared.cart_keys import item_key as compose_item_key

from store.cart.events import CartCleared, CartItemAdded, CartItemQuantityUpdated, CartItemRemoved
from store.domain import store


def owner_key_for(user_id=None, guest_session=None) -> str:
    if user_id:
        return f"user:{user_id}"
    if guest_session:
        return f"guest:{guest_session}"
    raise ValidationError({"owner": ["A user id or guest session is required"]})


@store.entity(part_of="Cart")
class CartLine:
    item_key = String(required=True, max_length=500)
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    selected_options = Text()  # JSON object
    quantity = Integer(required=True, min_value=1)
    price_at_add = Float(required=True, min_value=0.0)
    added_at = DateTime()

    @property
    def subtotal(self) -> float:
        return round(self.price_at_add * self.quantity, 2)

    def options(self) -> dict:
        return json.loads(self.selected_options) if self.selected_options else {}


@store.aggregate
class Cart:
    owner_key = Identifier(identifier=True, required=True)
    user_id = Identifier()
    guest_session = String(max_length=255)
    items = HasMany(CartLine)
    currency = String(max_length=3, default="GHS")
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, guest_session=None):
        now = datetime.now(UTC)
        return cls(
            owner_key=owner_key_for(user_id, guest_session),
            user_id=user_id,
            guest_session=guest_session,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def total_amount(self) -> float:
        return round(sum(line.subtotal for line in self.items), 2)

    def line_for(self, item_key):
        return next((line for line in self.items if line.item_key == item_key), None)

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product_id, product_name, unit_price, quantity, selected_options=None):
        """Add a line, or increase the quantity of the line with the same item key.

        Returns the resulting line.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        key = compose_item_key(str(product_id), selected_options)
        now = datetime.now(UTC)
        line = self.line_for(key)

        if line:
            line.quantity += quantity
        else:
            line = CartLine(
                item_key=key,
                product_id=product_id,
                product_name=product_name,
                selected_options=json.dumps(selected_options or {}, sort_keys=True),
                quantity=quantity,
                price_at_add=unit_price,
                added_at=now,
            )
            self.add_items(line)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                owner_key=str(self.owner_key),
                item_key=key,
                product_id=str(product_id),
                quantity=quantity,
                price_at_add=line.price_at_add,
            )
        )
        return line

    def update_quantity(self, item_key, new_quantity):
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        line = self.line_for(item_key)
        if line is None:
            raise ValidationError({"item_key": ["Item not found in cart"]})

        previous_quantity = line.quantity
        line.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemQuantityUpdated(
                owner_key=str(self.owner_key),
                item_key=item_key,
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_key):
        line = self.line_for(item_key)
        if line is None:
            raise ValidationError({"item_key": ["Item not found in cart"]})

        self.remove_items(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(owner_key=str(self.owner_key), item_key=item_key))

    def clear(self):
        cleared = len(self.items)
        for line in list(self.items):
            self.remove_items(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(owner_key=str(self.owner_key), items_cleared=cleared))
