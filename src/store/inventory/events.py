"""Domain events for the StockRecord aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from store.domain import store


@store.event(part_of="StockRecord")
class StockLevelChanged:
    """Stock or reservation counts for a product were set by the inventory owner."""

    __version__ = 1

    product_id = Identifier(required=True)
    previous_available = Integer()
    stock_quantity = Integer(required=True)
    reserved_quantity = Integer(required=True)
    available_quantity = Integer(required=True)
    reason = String(max_length=500)
    changed_at = DateTime(required=True)
