import asyncio
from types import SimpleNamespace

import httpx
import pytest
from shared.cart_keys import item_key
from storefront.api import Credentials, StoreApiClient
from storefront.config import StorefrontSettings
from storefront.notices import NoticeBoard


class FakeStore:
    """Scripted store API served through httpx.MockTransport.

    Routes are keyed by (method, path). A route answers with an envelope, raises
    a transport error, or waits on a gate so tests can hold requests in flight.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list] = {}

    def on(self, method, path, data=None, status=200, error_code=None, message="OK", raises=None, gate=None):
        self._routes.setdefault((method, path), []).append(
            {
                "data": data,
                "status": status,
                "error_code": error_code,
                "message": message,
                "raises": raises,
                "gate": gate,
            }
        )

    def calls(self, method, path) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self._routes.get((request.method, request.url.path))
        if not scripted:
            return httpx.Response(404, json=_failure(404, "NOT_FOUND", f"No route {request.url.path}"))

        # The last scripted answer repeats once the earlier ones are used up
        answer = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        if answer["gate"] is not None:
            await answer["gate"].wait()
        if answer["raises"] is not None:
            raise answer["raises"]
        if answer["status"] >= 400:
            return httpx.Response(
                answer["status"], json=_failure(answer["status"], answer["error_code"], answer["message"])
            )
        return httpx.Response(answer["status"], json={"status": True, "data": answer["data"], "message": "OK"})


def _failure(code, error_code, message):
    return {
        "status": False,
        "data": {"code": code, "errorCode": error_code, "message": message, "details": {}},
        "message": message,
    }


class ManualClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def settings():
    return StorefrontSettings(api_url="http://store.test", return_base="https://shop.test")


@pytest.fixture
def api(fake_store, settings):
    return StoreApiClient(settings, Credentials(user_id="user-1"), transport=httpx.MockTransport(fake_store))


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def notices(clock):
    return NoticeBoard(ttl=5.0, clock=clock)


@pytest.fixture
def gate():
    return asyncio.Event()


def stock_payload(product_id, available, stock=None, threshold=5):
    stock = available if stock is None else stock
    return {
        "productId": product_id,
        "stockQuantity": stock,
        "reservedQuantity": stock - available,
        "availableQuantity": available,
        "lowStockThreshold": threshold,
    }


def line_payload(product_id, quantity, options=None, price=50.0):
    return {
        "itemKey": item_key(product_id, options),
        "productId": product_id,
        "productName": product_id.title(),
        "selectedOptions": options or {},
        "quantity": quantity,
        "priceAtAdd": price,
        "subtotal": price * quantity,
    }


def cart_payload(*lines):
    return {
        "items": list(lines),
        "itemCount": sum(line["quantity"] for line in lines),
        "totalAmount": sum(line["subtotal"] for line in lines),
        "currency": "GHS",
    }


def order_payload(order_id="order-1", status="PENDING", payment_status="UNPAID", current_payment_id=None):
    return {
        "id": order_id,
        "status": status,
        "paymentStatus": payment_status,
        "items": [],
        "totalAmount": 100.0,
        "currency": "GHS",
        "currentPaymentId": current_payment_id,
        "statusHistory": [],
    }


def payment_payload(payment_id="pay-1", order_id="order-1", status="PENDING", key="key-1", failure_reason=None):
    return {
        "id": payment_id,
        "orderId": order_id,
        "status": status,
        "gateway": "FAKEPAY",
        "transactionRef": f"txn-{payment_id}",
        "idempotencyKey": key,
        "checkoutUrl": f"https://checkout.fakepay.test/pay/txn-{payment_id}",
        "amount": 100.0,
        "currency": "GHS",
        "failureReason": failure_reason,
    }


@pytest.fixture
def wire():
    """Builders for store payloads as they appear on the wire."""
    return SimpleNamespace(
        stock=stock_payload,
        line=line_payload,
        cart=cart_payload,
        order=order_payload,
        payment=payment_payload,
    )
