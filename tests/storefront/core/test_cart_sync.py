import asyncio
import json

import pytest
from shared.cart_keys import item_key
from storefront.cart import CartSynchronizer, LineLockTable, clamp_quantity
from storefront.errors import LineBusy, ValidationError
from storefront.inventory import InventoryResolver, StockBand
from storefront.notices import NoticeScope
from storefront.view import ViewContext

RED = {"color": "red"}
BLUE = {"color": "blue"}


@pytest.fixture
def cart_sync(api, notices):
    return CartSynchronizer(api, InventoryResolver(api), notices)


async def _until_requested(fake_store, count=1):
    while len(fake_store.requests) < count:
        await asyncio.sleep(0)


class TestClampQuantity:
    @pytest.mark.parametrize(
        "current, delta, available, expected",
        [
            (1, -1, 10, 1),
            (2, -1, 10, 1),
            (2, 1, 10, 3),
            (3, 1, 3, 3),
            (5, -1, 2, 2),
            (1, 1, 0, 1),
            (998, 1, None, 999),
            (999, 1, None, 999),
        ],
    )
    def test_bounds(self, current, delta, available, expected):
        assert clamp_quantity(current, delta, available) == expected


class TestLineLocks:
    @pytest.mark.asyncio
    async def test_busy_line_rejects_without_waiting(self):
        locks = LineLockTable()
        async with locks.hold("A-{}"):
            assert locks.is_busy("A-{}")
            with pytest.raises(LineBusy):
                async with locks.hold("A-{}"):
                    pass
        assert not locks.is_busy("A-{}")

    @pytest.mark.asyncio
    async def test_second_mutation_of_a_line_is_rejected(self, cart_sync, fake_store, wire, gate):
        fake_store.on("POST", "/store/cart/items", data=wire.cart(wire.line("A", 1)), gate=gate)

        first = asyncio.create_task(cart_sync.add_item("A"))
        await _until_requested(fake_store)
        assert cart_sync.pending == {item_key("A")}

        with pytest.raises(LineBusy):
            await cart_sync.add_item("A")

        gate.set()
        await first
        assert cart_sync.pending == set()
        assert fake_store.calls("POST", "/store/cart/items") == 1

    @pytest.mark.asyncio
    async def test_waiting_mutation_runs_after_the_first(self, cart_sync, fake_store, wire, gate):
        fake_store.on("POST", "/store/cart/items", data=wire.cart(wire.line("A", 1)), gate=gate)
        fake_store.on("POST", "/store/cart/items", data=wire.cart(wire.line("A", 2)))

        first = asyncio.create_task(cart_sync.add_item("A"))
        await _until_requested(fake_store)
        second = asyncio.create_task(cart_sync.add_item("A", wait=True))
        await asyncio.sleep(0)
        assert fake_store.calls("POST", "/store/cart/items") == 1

        gate.set()
        await asyncio.gather(first, second)
        assert fake_store.calls("POST", "/store/cart/items") == 2
        assert cart_sync.cart.items[0].quantity == 2

    @pytest.mark.asyncio
    async def test_variants_do_not_block_each_other(self, cart_sync, fake_store, wire, gate):
        red_line = wire.line("A", 1, RED)
        fake_store.on("POST", "/store/cart/items", data=wire.cart(red_line), gate=gate)
        fake_store.on("POST", "/store/cart/items", data=wire.cart(red_line, wire.line("A", 1, BLUE)))

        red = asyncio.create_task(cart_sync.add_item("A", selected_options=RED))
        await _until_requested(fake_store)
        blue = await cart_sync.add_item("A", selected_options=BLUE)

        assert blue is not None
        assert cart_sync.pending == {item_key("A", RED)}
        gate.set()
        await red


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_resolves_availability(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 2), wire.line("B", 1)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 3)])

        cart = await cart_sync.load()
        await cart_sync.availability_task

        assert len(cart.items) == 2
        assert cart_sync.availability.band("A") == StockBand.LOW_STOCK
        assert cart_sync.availability.band("B") == StockBand.UNKNOWN
        assert cart_sync.max_quantity(cart.line(item_key("B"))) == 999

    @pytest.mark.asyncio
    async def test_load_failure_posts_cart_notice(self, cart_sync, fake_store):
        fake_store.on("GET", "/store/cart", status=500, error_code="INTERNAL", message="boom")

        assert await cart_sync.load() is None
        assert cart_sync.cart.is_empty
        assert cart_sync.notices.latest(NoticeScope.CART).message == "Failed to load cart"

    @pytest.mark.asyncio
    async def test_cart_is_applied_before_availability_arrives(self, cart_sync, fake_store, wire, gate):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 2)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 3)], gate=gate)

        cart = await cart_sync.load()

        assert cart_sync.cart == cart
        assert cart_sync.availability.band("A") == StockBand.UNKNOWN
        await _until_requested(fake_store, 2)
        assert not cart_sync.availability_task.done()

        gate.set()
        await cart_sync.availability_task
        assert cart_sync.availability.band("A") == StockBand.LOW_STOCK

    @pytest.mark.asyncio
    async def test_availability_for_a_closed_view_is_discarded(self, cart_sync, fake_store, wire, gate):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 2)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 3)], gate=gate)
        view = ViewContext()

        assert await cart_sync.load(view.token()) is not None
        view.close()
        gate.set()
        await cart_sync.availability_task

        assert cart_sync.availability.band("A") == StockBand.UNKNOWN

    @pytest.mark.asyncio
    async def test_result_for_a_stale_view_is_discarded(self, cart_sync, fake_store, wire, gate):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 1)), gate=gate)
        view = ViewContext()

        loading = asyncio.create_task(cart_sync.load(view.token()))
        await _until_requested(fake_store)
        view.close()
        gate.set()

        assert await loading is None
        assert cart_sync.cart.is_empty
        assert fake_store.calls("POST", "/store/inventory/batch") == 0


class TestMutations:
    @pytest.mark.asyncio
    async def test_missing_required_option_is_rejected_locally(self, cart_sync, fake_store):
        with pytest.raises(ValidationError) as exc:
            await cart_sync.add_item("A", selected_options={"size": "M"}, required_options=("size", "color"))

        assert exc.value.messages == {"selected_options": ["Please select color"]}
        assert fake_store.requests == []

    @pytest.mark.asyncio
    async def test_failed_add_keeps_cart_and_posts_item_notice(self, cart_sync, fake_store, wire, clock):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 1)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 1)])
        fake_store.on("POST", "/store/cart/items", status=409, error_code="INSUFFICIENT_STOCK", message="Only 1 left")
        before = await cart_sync.load()

        assert await cart_sync.add_item("A") is None

        assert cart_sync.cart == before
        notice = cart_sync.notices.latest(NoticeScope.ITEM, "A")
        assert notice.message == "Not enough stock available"
        assert notice.error_code == "INSUFFICIENT_STOCK"

        clock.advance(5.01)
        assert cart_sync.notices.latest(NoticeScope.ITEM, "A") is None

    @pytest.mark.asyncio
    async def test_server_error_uses_generic_message(self, cart_sync, fake_store):
        fake_store.on("POST", "/store/cart/items", status=500, error_code="INTERNAL", message="Traceback")

        await cart_sync.add_item("A")

        assert cart_sync.notices.latest(NoticeScope.ITEM, "A").message == "Failed to add item"

    @pytest.mark.asyncio
    async def test_update_targets_the_single_line(self, cart_sync, fake_store, wire):
        key = item_key("A", RED)
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 1, RED)))
        fake_store.on("PUT", f"/store/cart/items/{key}", data=wire.cart(wire.line("A", 3, RED)))
        await cart_sync.load()

        cart = await cart_sync.update_quantity("A", 3)

        assert cart.line(key).quantity == 3
        assert fake_store.calls("PUT", f"/store/cart/items/{key}") == 1

    @pytest.mark.asyncio
    async def test_ambiguous_product_needs_item_key(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 1, RED), wire.line("A", 1, BLUE)))
        await cart_sync.load()

        with pytest.raises(ValidationError):
            await cart_sync.update_quantity("A", 2)

    @pytest.mark.asyncio
    async def test_failed_update_posts_cart_notice(self, cart_sync, fake_store):
        fake_store.on("PUT", f"/store/cart/items/{item_key('A')}", status=503, error_code="UNAVAILABLE", message="down")

        assert await cart_sync.update_quantity("A", 2, item_key=item_key("A")) is None
        assert cart_sync.notices.latest(NoticeScope.CART, item_key("A")).message == "Failed to update quantity"

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, cart_sync, fake_store, wire):
        fake_store.on("DELETE", f"/store/cart/items/{item_key('A')}", data=wire.cart(wire.line("B", 1)))
        fake_store.on("POST", "/store/cart/clear", data=wire.cart())

        assert len((await cart_sync.remove_item("A", item_key=item_key("A"))).items) == 1
        assert (await cart_sync.clear()).is_empty


class TestQuantityBounds:
    @pytest.fixture
    def loaded(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 3)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 3)])
        return cart_sync

    @pytest.mark.asyncio
    async def test_increment_at_available_makes_no_call(self, loaded, fake_store):
        await loaded.load()
        await loaded.availability_task
        line = loaded.cart.items[0]

        assert not loaded.can_increment(line)
        assert await loaded.increment(line) is loaded.cart
        assert fake_store.calls("PUT", f"/store/cart/items/{line.item_key}") == 0

    @pytest.mark.asyncio
    async def test_decrement_at_one_makes_no_call(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 1)))
        await cart_sync.load()
        line = cart_sync.cart.items[0]

        assert not cart_sync.can_decrement(line)
        await cart_sync.decrement(line)
        assert fake_store.calls("PUT", f"/store/cart/items/{line.item_key}") == 0

    @pytest.mark.asyncio
    async def test_decrement_sends_clamped_quantity(self, loaded, fake_store, wire):
        await loaded.load()
        await loaded.availability_task
        line = loaded.cart.items[0]
        fake_store.on("PUT", f"/store/cart/items/{line.item_key}", data=wire.cart(wire.line("A", 2)))

        await loaded.decrement(line)

        request = fake_store.requests[-1]
        assert request.method == "PUT"
        assert json.loads(request.content) == {"quantity": 2}


class TestStockWarnings:
    @pytest.mark.asyncio
    async def test_variant_lines_compare_with_shared_record_each(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 2, RED), wire.line("A", 2, BLUE)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 3)])
        await cart_sync.load()
        await cart_sync.availability_task

        assert cart_sync.stock_warnings() == []
        assert all(cart_sync.can_increment(line) for line in cart_sync.cart.items)

    @pytest.mark.asyncio
    async def test_lines_above_available_are_flagged(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 2, RED), wire.line("B", 1)))
        fake_store.on("POST", "/store/inventory/batch", data=[wire.stock("A", 1), wire.stock("B", 0, stock=2)])
        await cart_sync.load()
        await cart_sync.availability_task

        warnings = {w.product_id: w.message for w in cart_sync.stock_warnings()}
        assert warnings == {"A": "Only 1 available", "B": "Out of stock"}

    @pytest.mark.asyncio
    async def test_unknown_availability_has_no_warnings(self, cart_sync, fake_store, wire):
        fake_store.on("GET", "/store/cart", data=wire.cart(wire.line("A", 50)))
        fake_store.on("POST", "/store/inventory/batch", status=503, error_code="UNAVAILABLE", message="down")
        await cart_sync.load()
        await cart_sync.availability_task

        assert cart_sync.stock_warnings() == []
