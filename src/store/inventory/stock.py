"""StockRecord aggregate: per-product stock snapshot owned by the inventory side.

Stock Level Model:
    stock_quantity:     Physical count
    reserved_quantity:  Held for orders elsewhere (not yet shipped)
    available_quantity: stock_quantity - reserved_quantity (what can be sold)

Carts and orders only read this record to reject requests that cannot be
fulfilled now; they never reserve or decrement stock.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer

from store.domain import store
from store.errors import StockConflict
from store.inventory.events import StockLevelChanged

DEFAULT_LOW_STOCK_THRESHOLD = 5


@store.aggregate
class StockRecord:
    product_id = Identifier(identifier=True, required=True)
    stock_quantity = Integer(default=0)
    reserved_quantity = Integer(default=0)
    available_quantity = Integer(default=0)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    updated_at = DateTime()

    @invariant.post
    def reserved_quantity_cannot_be_negative(self):
        if self.reserved_quantity is not None and self.reserved_quantity < 0:
            raise ValidationError({"reserved_quantity": ["Reserved quantity cannot be negative"]})

    @invariant.post
    def available_cannot_exceed_stock(self):
        if (self.available_quantity or 0) > (self.stock_quantity or 0):
            raise ValidationError({"available_quantity": ["Available quantity cannot exceed stock quantity"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, product_id, stock_quantity=0, reserved_quantity=0, low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD):
        return cls(
            product_id=product_id,
            stock_quantity=stock_quantity,
            reserved_quantity=reserved_quantity,
            available_quantity=stock_quantity - reserved_quantity,
            low_stock_threshold=low_stock_threshold,
            updated_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Mutations (inventory owner only)
    # -------------------------------------------------------------------
    def set_levels(self, stock_quantity: int, reserved_quantity: int | None = None, reason: str = "") -> None:
        previous_available = self.available_quantity
        self.stock_quantity = stock_quantity
        if reserved_quantity is not None:
            self.reserved_quantity = reserved_quantity
        self.available_quantity = self.stock_quantity - self.reserved_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockLevelChanged(
                product_id=str(self.product_id),
                previous_available=previous_available,
                stock_quantity=self.stock_quantity,
                reserved_quantity=self.reserved_quantity,
                available_quantity=self.available_quantity,
                reason=reason,
                changed_at=self.updated_at,
            )
        )

    def adjust(self, adjustment: int, reason: str) -> None:
        """Apply a signed delta to the physical count."""
        new_stock = self.stock_quantity + adjustment
        if new_stock < 0:
            raise ValidationError({"adjustment": [f"Adjustment would make stock negative ({new_stock})"]})
        self.set_levels(new_stock, reason=reason)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def assert_can_fulfil(self, quantity: int) -> None:
        if quantity > self.available_quantity:
            raise StockConflict(
                {
                    "quantity": [
                        f"Only {max(self.available_quantity, 0)} available for product {self.product_id}",
                    ]
                }
            )
