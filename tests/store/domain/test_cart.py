import pytest
from protean.exceptions import ValidationError
from store.cart.cart import Cart, owner_key_for
from store.cart.events import CartCleared, CartItemAdded, CartItemRemoved


def _make_cart():
    return Cart.create(user_id="user-1")


class TestOwnerKey:
    def test_user_wins_over_guest_session(self):
        assert owner_key_for("user-1", "sess-1") == "user:user-1"

    def test_guest(self):
        assert owner_key_for(None, "sess-1") == "guest:sess-1"

    def test_anonymous_without_session(self):
        with pytest.raises(ValidationError):
            owner_key_for(None, None)


class TestCartLines:
    def test_add_creates_line_keyed_by_options(self):
        cart = _make_cart()
        line = cart.add_item("prod-1", "Tee", 50.0, 2, {"size": "M"})

        assert line.item_key == 'prod-1-{"size":"M"}'
        assert cart.item_count == 2
        assert cart.total_amount == 100.0
        assert isinstance(cart._events[-1], CartItemAdded)

    def test_same_key_merges(self):
        cart = _make_cart()
        cart.add_item("prod-1", "Tee", 50.0, 1)
        cart.add_item("prod-1", "Tee", 50.0, 2)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_variants_are_separate_lines(self):
        cart = _make_cart()
        cart.add_item("prod-1", "Tee", 50.0, 1, {"color": "red"})
        cart.add_item("prod-1", "Tee", 50.0, 1, {"color": "blue"})

        assert len(cart.items) == 2
        assert cart.item_count == 2

    def test_update_quantity(self):
        cart = _make_cart()
        line = cart.add_item("prod-1", "Tee", 50.0, 1)
        cart.update_quantity(line.item_key, 4)
        assert cart.line_for(line.item_key).quantity == 4

    def test_quantity_must_be_positive(self):
        cart = _make_cart()
        line = cart.add_item("prod-1", "Tee", 50.0, 1)
        with pytest.raises(ValidationError):
            cart.update_quantity(line.item_key, 0)

    def test_remove_requires_full_item_key(self):
        cart = _make_cart()
        cart.add_item("prod-1", "Tee", 50.0, 1, {"color": "red"})
        with pytest.raises(ValidationError):
            cart.remove_item("prod-1")

        cart.remove_item('prod-1-{"color":"red"}')
        assert cart.items == []
        assert isinstance(cart._events[-1], CartItemRemoved)

    def test_clear(self):
        cart = _make_cart()
        cart.add_item("prod-1", "Tee", 50.0, 1)
        cart.add_item("prod-2", "Cap", 20.0, 1)
        cart.clear()

        assert cart.items == []
        assert cart._events[-1].items_cleared == 2
        assert isinstance(cart._events[-1], CartCleared)
