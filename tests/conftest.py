import json
import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/storefront/" in test_path:
            item.add_marker(pytest.mark.core)

        if "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def store_bed():
    from store.domain import store

    bed = DomainFixture(store)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(store_bed):
    """Run every test inside the store domain context and start from empty stores."""
    with store_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def fake_gateway():
    from store.gateway import reset_gateway, set_gateway
    from store.gateway.fake_adapter import FakeGateway

    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest.fixture
def register_product():
    """Register a product and, unless `stock` is None, its stock record."""
    from protean import current_domain
    from store.catalogue.product import RegisterProduct
    from store.inventory.adjustment import SetStockLevels

    def _register(product_id="prod-tee", name="Kente Tee", price=50.0, required_options=None, stock=10, reserved=0):
        current_domain.process(
            RegisterProduct(
                product_id=product_id,
                name=name,
                price=price,
                required_options=json.dumps(required_options or []),
            ),
            asynchronous=False,
        )
        if stock is not None:
            current_domain.process(
                SetStockLevels(product_id=product_id, stock_quantity=stock, reserved_quantity=reserved),
                asynchronous=False,
            )
        return product_id

    return _register
