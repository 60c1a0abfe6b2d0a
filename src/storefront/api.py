"""Async HTTP client for the store API.

Every response arrives in the ``{status, data, message}`` envelope. A false
status or an HTTP error becomes an ApiError carrying the store's error code; a
request that never got a response becomes an ApiError with status code 0.
"""

from dataclasses import dataclass, field
from urllib.parse import quote

import httpx
import structlog

from storefront.config import StorefrontSettings
from storefront.errors import NETWORK_ERROR, ApiError
from storefront.models import Cart, Order, Payment, ShippingAddress, StockRecord

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Who the storefront is acting for; sent as request headers."""

    user_id: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    guest_session: str | None = None
    guest_email: str | None = None

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    def headers(self) -> dict[str, str]:
        headers = {}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
            if self.roles:
                headers["X-User-Roles"] = ",".join(self.roles)
        if self.guest_session:
            headers["X-Guest-Session"] = self.guest_session
        if self.guest_email:
            headers["X-Guest-Email"] = self.guest_email
        return headers


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        return ApiError(response.status_code, response.reason_phrase or "Unexpected response")

    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, dict):
        return ApiError(
            status_code=data.get("code") or response.status_code,
            message=data.get("message") or body.get("message") or "Request failed",
            error_code=data.get("errorCode"),
            details=data.get("details"),
        )
    message = body.get("message") if isinstance(body, dict) else None
    return ApiError(response.status_code, message or "Request failed")


class StoreApiClient:
    def __init__(
        self,
        settings: StorefrontSettings | None = None,
        credentials: Credentials | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or StorefrontSettings()
        self.credentials = credentials or Credentials()
        self._client = httpx.AsyncClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "StoreApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(self, method: str, path: str, json=None):
        """Send a request and return the envelope's ``data``."""
        try:
            response = await self._client.request(method, path, json=json, headers=self.credentials.headers())
        except httpx.HTTPError as exc:
            logger.warning("Store request failed", method=method, path=path, error=str(exc))
            raise ApiError(0, str(exc) or "Network error", error_code=NETWORK_ERROR) from exc

        if response.is_error:
            error = _error_from_response(response)
            logger.info(
                "Store request rejected",
                method=method,
                path=path,
                status_code=error.status_code,
                error_code=error.error_code,
            )
            raise error

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, "Malformed response from store") from exc
        if not body.get("status", False):
            raise _error_from_response(response)
        return body.get("data")

    # -------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------
    async def batch_inventory(self, product_ids: list[str]) -> list[StockRecord]:
        data = await self.request("POST", "/store/inventory/batch", json=list(product_ids))
        return [StockRecord.model_validate(record) for record in data or []]

    # -------------------------------------------------------------------
    # Cart
    # -------------------------------------------------------------------
    async def get_cart(self) -> Cart:
        return Cart.model_validate(await self.request("GET", "/store/cart") or {})

    async def add_cart_item(self, product_id: str, quantity: int, selected_options: dict | None = None) -> Cart:
        payload = {"productId": product_id, "quantity": quantity, "selectedOptions": selected_options or {}}
        return Cart.model_validate(await self.request("POST", "/store/cart/items", json=payload))

    async def update_cart_item(self, item_key: str, quantity: int) -> Cart:
        path = f"/store/cart/items/{quote(item_key, safe='')}"
        return Cart.model_validate(await self.request("PUT", path, json={"quantity": quantity}))

    async def remove_cart_item(self, item_key: str) -> Cart:
        path = f"/store/cart/items/{quote(item_key, safe='')}"
        return Cart.model_validate(await self.request("DELETE", path))

    async def clear_cart(self) -> Cart:
        return Cart.model_validate(await self.request("POST", "/store/cart/clear"))

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    async def place_order(
        self,
        shipping: ShippingAddress,
        payment_method: str,
        notes: str | None = None,
        guest: dict | None = None,
    ) -> Order:
        payload = {
            "shippingAddress": shipping.model_dump(by_alias=True),
            "paymentMethod": payment_method,
            "notes": notes,
        }
        path = "/store/orders"
        if guest is not None:
            payload.update(guest)
            path = "/store/orders/guest"
        return Order.model_validate(await self.request("POST", path, json=payload))

    async def get_order(self, order_id: str) -> Order:
        return Order.model_validate(await self.request("GET", f"/store/orders/{order_id}"))

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    async def initiate_payment(
        self,
        order_id: str,
        callback_url: str,
        idempotency_key: str,
        guest_email: str | None = None,
    ) -> Payment:
        payload = {"callbackUrl": callback_url, "idempotencyKey": idempotency_key}
        path = f"/store/payments/{order_id}/initiate"
        if guest_email is not None:
            payload["guestEmail"] = guest_email
            path = f"/store/payments/guest/{order_id}/initiate"
        return Payment.model_validate(await self.request("POST", path, json=payload))

    async def verify_payment(self, payment_id: str) -> Payment:
        return Payment.model_validate(await self.request("GET", f"/store/payments/{payment_id}/verify"))

    async def current_payment(self, order_id: str) -> Payment | None:
        data = await self.request("GET", f"/store/payments/order/{order_id}")
        return Payment.model_validate(data) if data else None

    async def payment_history(self, order_id: str) -> list[Payment]:
        data = await self.request("GET", f"/store/payments/order/{order_id}/history")
        return [Payment.model_validate(payment) for payment in data or []]

    # -------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------
    async def admin_get_order(self, order_id: str) -> Order:
        return Order.model_validate(await self.request("GET", f"/admin/orders/{order_id}"))

    async def admin_change_status(self, order_id: str, status: str, reason: str | None = None) -> Order:
        payload = {"status": status, "reason": reason}
        return Order.model_validate(await self.request("PUT", f"/admin/orders/{order_id}/status", json=payload))

    async def admin_fulfill(self, order_id: str, tracking_number: str | None, carrier: str | None) -> Order:
        payload = {"trackingNumber": tracking_number, "carrier": carrier}
        return Order.model_validate(await self.request("PUT", f"/admin/orders/{order_id}/fulfill", json=payload))

    async def admin_deliver(self, order_id: str) -> Order:
        return Order.model_validate(await self.request("PUT", f"/admin/orders/{order_id}/deliver"))
