"""Inventory availability resolution for cart and product views.

Availability is fetched in one batch per view load and never blocks the view:
when the store cannot be reached every product is simply unknown, and unknown
products are not capped beyond the generic quantity ceiling.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog

from storefront.api import StoreApiClient
from storefront.errors import ApiError
from storefront.models import StockRecord
from storefront.view import ViewToken

logger = structlog.get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 5
UNRESOLVED_MAX_QUANTITY = 999


class StockBand(Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    UNKNOWN = "UNKNOWN"


def classify(record: StockRecord | None) -> StockBand:
    if record is None:
        return StockBand.UNKNOWN
    available = record.available_quantity
    threshold = record.low_stock_threshold if record.low_stock_threshold is not None else DEFAULT_LOW_STOCK_THRESHOLD
    if available <= 0:
        return StockBand.OUT_OF_STOCK
    if available <= threshold:
        return StockBand.LOW_STOCK
    return StockBand.IN_STOCK


@dataclass
class Availability:
    """Stock records by product id; products without a record are unknown."""

    records: dict[str, StockRecord] = field(default_factory=dict)

    def get(self, product_id: str) -> StockRecord | None:
        return self.records.get(product_id)

    def is_known(self, product_id: str) -> bool:
        return product_id in self.records

    def available(self, product_id: str) -> int | None:
        record = self.records.get(product_id)
        return record.available_quantity if record else None

    def band(self, product_id: str) -> StockBand:
        return classify(self.records.get(product_id))

    def max_quantity(self, product_id: str) -> int:
        available = self.available(product_id)
        return UNRESOLVED_MAX_QUANTITY if available is None else available


class InventoryResolver:
    def __init__(self, api: StoreApiClient) -> None:
        self.api = api

    async def resolve(self, product_ids) -> Availability:
        """One batch request for the distinct ids; failures degrade to all-unknown."""
        ids = list(dict.fromkeys(str(product_id) for product_id in product_ids))
        if not ids:
            return Availability()

        try:
            records = await self.api.batch_inventory(ids)
        except ApiError as exc:
            logger.warning(
                "Inventory resolution failed, treating products as unknown",
                product_ids=ids,
                error_code=exc.error_code,
                error=exc.message,
            )
            return Availability()

        return Availability({record.product_id: record for record in records if record.product_id in ids})

    def resolve_in_background(self, product_ids, view: ViewToken | None, apply) -> asyncio.Task:
        """Resolve without blocking the caller; `apply` only runs while `view` is live.

        A missing `view` never goes stale.
        """
        product_ids = list(product_ids)

        async def _run() -> Availability:
            availability = await self.resolve(product_ids)
            if view is None or view.live:
                apply(availability)
            else:
                logger.debug("Discarded inventory result for a stale view", generation=view.generation)
            return availability

        return asyncio.get_running_loop().create_task(_run())
