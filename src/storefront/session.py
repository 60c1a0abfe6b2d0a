"""Wires the storefront components for one shopper or operator session."""

import httpx
from shared.permissions import capabilities_for

from storefront.api import Credentials, StoreApiClient
from storefront.cart import CartSynchronizer
from storefront.checkout import OrderPlacement
from storefront.config import StorefrontSettings
from storefront.inventory import InventoryResolver
from storefront.notices import NoticeBoard
from storefront.order_status import OrderStatusController
from storefront.payment import PaymentCoordinator


class StorefrontSession:
    def __init__(
        self,
        settings: StorefrontSettings | None = None,
        credentials: Credentials | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or StorefrontSettings.from_env()
        self.credentials = credentials or Credentials()
        self.api = StoreApiClient(self.settings, self.credentials, transport=transport)
        self.notices = NoticeBoard(ttl=self.settings.notice_ttl)
        self.inventory = InventoryResolver(self.api)
        self.cart = CartSynchronizer(self.api, self.inventory, self.notices)
        self.payments = PaymentCoordinator(self.api, self.notices, self.settings)
        self.checkout = OrderPlacement(self.api, self.payments, self.notices, self.settings)
        self.order_status = OrderStatusController(self.api, capabilities_for(self.credentials.roles), self.notices)

    async def close(self) -> None:
        await self.api.close()

    async def __aenter__(self) -> "StorefrontSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
