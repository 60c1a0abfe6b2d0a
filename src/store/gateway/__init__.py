"""The payment gateway the store talks to.

Only the fake redirect gateway ships with the store. Its hosted checkout pages
live under STORE_CHECKOUT_BASE_URL. Tests install their own instance with
set_gateway() and drop it again with reset_gateway().
"""

import os

import structlog

from store.gateway.fake_adapter import FakeGateway
from store.gateway.port import PaymentGateway

logger = structlog.get_logger(__name__)

DEFAULT_CHECKOUT_BASE_URL = "https://checkout.fakepay.test"

_active: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    global _active
    if _active is None:
        base_url = os.getenv("STORE_CHECKOUT_BASE_URL", DEFAULT_CHECKOUT_BASE_URL)
        _active = FakeGateway(base_url=base_url)
        logger.info("Payment gateway selected", gateway=_active.name, base_url=base_url)
    return _active


def set_gateway(gateway: PaymentGateway) -> None:
    global _active
    _active = gateway


def reset_gateway() -> None:
    global _active
    _active = None
