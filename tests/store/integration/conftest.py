import pytest
from fastapi.testclient import TestClient
from store.api.app import create_app

SHOPPER = {"X-User-Id": "user-1", "X-User-Roles": "ROLE_USER"}

SHIPPING = {"street": "12 Oxford St", "city": "Accra", "region": "Greater Accra", "country": "Ghana"}


@pytest.fixture()
def client():
    return TestClient(create_app())


@pytest.fixture()
def seeded(register_product):
    register_product("prod-tee", name="Kente Tee", price=50.0, stock=10)
    register_product("prod-cap", name="Cap", price=20.0, stock=2, required_options=["color"])


@pytest.fixture()
def placed_order(client, seeded):
    """A signed-in shopper's PENDING order for two tees."""
    client.post("/store/cart/items", json={"productId": "prod-tee", "quantity": 2}, headers=SHOPPER)
    response = client.post(
        "/store/orders",
        json={"shippingAddress": SHIPPING, "paymentMethod": "CARD"},
        headers=SHOPPER,
    )
    assert response.status_code == 201
    return response.json()["data"]
