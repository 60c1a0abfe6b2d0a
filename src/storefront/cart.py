"""Cart synchronizer: the shopper-side mirror of the store's cart.

The store's cart is authoritative. Every mutation is a round trip, and only a
successful response replaces the local snapshot; a failed one leaves the last
known-good cart in place and posts a notice instead.

Mutations of one line are serialized by a per-line lock keyed by item key
(falling back to the product id). Lines of different products or variants
never wait for each other.

Availability is tracked per product id. Variant lines of one product share a
stock record, so warnings compare each line with the shared record on its own
and do not add the lines up.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog
from shared.cart_keys import item_key as compose_item_key

from storefront.api import StoreApiClient
from storefront.errors import ApiError, LineBusy, ValidationError
from storefront.inventory import UNRESOLVED_MAX_QUANTITY, Availability, InventoryResolver, StockBand
from storefront.models import Cart, CartLine
from storefront.notices import NoticeBoard, NoticeScope
from storefront.view import ViewToken

logger = structlog.get_logger(__name__)


def clamp_quantity(current: int, delta: int, available: int | None) -> int:
    """New quantity for a +/- step, never below 1 nor above what can be sold."""
    upper = max(available, 1) if available is not None else UNRESOLVED_MAX_QUANTITY
    return min(max(current + delta, 1), upper)


class LineLockTable:
    """One asyncio.Lock per cart line key."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def pending(self) -> set[str]:
        return {key for key, lock in self._locks.items() if lock.locked()}

    def is_busy(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str, wait: bool = False):
        lock = self._locks.setdefault(key, asyncio.Lock())
        if lock.locked() and not wait:
            raise LineBusy(key)
        async with lock:
            yield


@dataclass(frozen=True)
class StockWarning:
    item_key: str
    product_id: str
    band: StockBand
    available: int
    message: str


class CartSynchronizer:
    def __init__(
        self,
        api: StoreApiClient,
        resolver: InventoryResolver,
        notices: NoticeBoard,
        locks: LineLockTable | None = None,
    ) -> None:
        self.api = api
        self.resolver = resolver
        self.notices = notices
        self.locks = locks or LineLockTable()
        self.cart = Cart()
        self.availability = Availability()
        self.availability_task: asyncio.Task | None = None

    @property
    def pending(self) -> set[str]:
        return self.locks.pending

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    async def load(self, view: ViewToken | None = None) -> Cart | None:
        """Fetch the store's cart and return it as soon as it is applied.

        Availability for its products resolves afterwards in `availability_task`.
        """
        try:
            cart = await self.api.get_cart()
        except ApiError as exc:
            self._fail(NoticeScope.CART, exc, "Failed to load cart")
            return None
        if not self._apply(cart, view):
            return None

        self.availability_task = self.resolver.resolve_in_background(
            [line.product_id for line in cart.items],
            view,
            self._set_availability,
        )
        return cart

    def refresh_availability(self, view: ViewToken) -> asyncio.Task:
        """Re-resolve availability in the background for the current lines."""
        return self.resolver.resolve_in_background(
            [line.product_id for line in self.cart.items],
            view,
            self._set_availability,
        )

    def _set_availability(self, availability: Availability) -> None:
        self.availability = availability

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    async def add_item(
        self,
        product_id: str,
        quantity: int = 1,
        selected_options: dict | None = None,
        required_options=(),
        wait: bool = False,
        view: ViewToken | None = None,
    ) -> Cart | None:
        options = selected_options or {}
        missing = [name for name in required_options if not options.get(name)]
        if missing:
            raise ValidationError({"selected_options": [f"Please select {name}" for name in missing]})
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        key = compose_item_key(product_id, options)
        async with self.locks.hold(key, wait=wait):
            try:
                cart = await self.api.add_cart_item(product_id, quantity, options)
            except ApiError as exc:
                self._fail(NoticeScope.ITEM, exc, "Failed to add item", key=product_id)
                return None
            return cart if self._apply(cart, view) else None

    async def update_quantity(
        self,
        product_id: str,
        quantity: int,
        item_key: str | None = None,
        selected_options: dict | None = None,
        wait: bool = False,
        view: ViewToken | None = None,
    ) -> Cart | None:
        key = self._resolve_key(product_id, item_key, selected_options)
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        async with self.locks.hold(key, wait=wait):
            try:
                cart = await self.api.update_cart_item(key, quantity)
            except ApiError as exc:
                self._fail(NoticeScope.CART, exc, "Failed to update quantity", key=key)
                return None
            return cart if self._apply(cart, view) else None

    async def increment(self, line: CartLine, wait: bool = False, view: ViewToken | None = None) -> Cart | None:
        if not self.can_increment(line):
            return self.cart
        target = clamp_quantity(line.quantity, 1, self.availability.available(line.product_id))
        return await self.update_quantity(line.product_id, target, item_key=line.item_key, wait=wait, view=view)

    async def decrement(self, line: CartLine, wait: bool = False, view: ViewToken | None = None) -> Cart | None:
        if not self.can_decrement(line):
            return self.cart
        target = clamp_quantity(line.quantity, -1, self.availability.available(line.product_id))
        return await self.update_quantity(line.product_id, target, item_key=line.item_key, wait=wait, view=view)

    async def remove_item(
        self,
        product_id: str,
        item_key: str | None = None,
        wait: bool = False,
        view: ViewToken | None = None,
    ) -> Cart | None:
        key = self._resolve_key(product_id, item_key, None)
        async with self.locks.hold(key, wait=wait):
            try:
                cart = await self.api.remove_cart_item(key)
            except ApiError as exc:
                self._fail(NoticeScope.CART, exc, "Failed to remove item", key=key)
                return None
            return cart if self._apply(cart, view) else None

    async def clear(self, view: ViewToken | None = None) -> Cart | None:
        try:
            cart = await self.api.clear_cart()
        except ApiError as exc:
            self._fail(NoticeScope.CART, exc, "Failed to clear cart")
            return None
        return cart if self._apply(cart, view) else None

    # -------------------------------------------------------------------
    # Quantity bounds and warnings
    # -------------------------------------------------------------------
    def max_quantity(self, line: CartLine) -> int:
        return self.availability.max_quantity(line.product_id)

    def can_increment(self, line: CartLine) -> bool:
        return line.quantity < self.max_quantity(line)

    def can_decrement(self, line: CartLine) -> bool:
        return line.quantity > 1

    def stock_warnings(self) -> list[StockWarning]:
        """Lines the shared stock record cannot cover, each compared on its own."""
        warnings = []
        for line in self.cart.items:
            record = self.availability.get(line.product_id)
            if record is None:
                continue
            available = record.available_quantity
            if available <= 0:
                message = "Out of stock"
            elif line.quantity > available:
                message = f"Only {available} available"
            else:
                continue
            warnings.append(
                StockWarning(
                    item_key=line.item_key,
                    product_id=line.product_id,
                    band=self.availability.band(line.product_id),
                    available=available,
                    message=message,
                )
            )
        return warnings

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _resolve_key(self, product_id: str, item_key: str | None, selected_options: dict | None) -> str:
        if item_key:
            return item_key
        if selected_options is not None:
            return compose_item_key(product_id, selected_options)
        lines = self.cart.lines_for(product_id)
        if len(lines) == 1:
            return lines[0].item_key
        if not lines:
            return product_id
        raise ValidationError({"item_key": ["Several lines hold this product; the item key is required"]})

    def _apply(self, cart: Cart, view: ViewToken | None) -> bool:
        if view is not None and not view.live:
            logger.debug("Discarded cart result for a stale view", generation=view.generation)
            return False
        self.cart = cart
        return True

    def _fail(self, scope: NoticeScope, error: ApiError, default: str, key: str | None = None) -> None:
        logger.warning(
            "Cart operation failed",
            scope=scope.value,
            key=key,
            status_code=error.status_code,
            error_code=error.error_code,
        )
        self.notices.post(scope, error.user_message(default), key=key, error_code=error.error_code)
