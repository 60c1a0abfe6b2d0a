"""Stock level commands: seeding and operator adjustments."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from store.domain import store
from store.inventory.stock import DEFAULT_LOW_STOCK_THRESHOLD, StockRecord


@store.command(part_of="StockRecord")
class SetStockLevels:
    product_id = Identifier(required=True)
    stock_quantity = Integer(required=True, min_value=0)
    reserved_quantity = Integer(default=0, min_value=0)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    reason = String(max_length=500)


@store.command(part_of="StockRecord")
class AdjustStock:
    product_id = Identifier(required=True)
    adjustment = Integer(required=True)
    reason = String(required=True, max_length=500)


@store.command_handler(part_of=StockRecord)
class StockLevelsHandler:
    @handle(SetStockLevels)
    def set_stock_levels(self, command):
        repo = current_domain.repository_for(StockRecord)
        try:
            record = repo.get(command.product_id)
            record.low_stock_threshold = command.low_stock_threshold
            record.set_levels(
                command.stock_quantity,
                reserved_quantity=command.reserved_quantity or 0,
                reason=command.reason or "",
            )
        except ObjectNotFoundError:
            record = StockRecord.create(
                product_id=command.product_id,
                stock_quantity=command.stock_quantity,
                reserved_quantity=command.reserved_quantity or 0,
                low_stock_threshold=command.low_stock_threshold,
            )
        repo.add(record)
        return str(record.product_id)

    @handle(AdjustStock)
    def adjust_stock(self, command):
        repo = current_domain.repository_for(StockRecord)
        record = repo.get(command.product_id)
        record.adjust(command.adjustment, reason=command.reason)
        repo.add(record)
