"""Payment gateway port (abstract interface).

The gateway is reached by redirect: the store opens a hosted checkout session,
the shopper completes it on the gateway's pages, and the store later pulls the
outcome by transaction reference. Adapters must treat the idempotency key as
the identity of a charge: opening a session twice with one key must not create
a second charge.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted checkout opened at the gateway."""

    transaction_ref: str
    checkout_url: str


@dataclass(frozen=True)
class GatewayStatus:
    """Outcome of a status pull: pending, success, failed or cancelled."""

    status: str
    failure_reason: str | None = None
    gateway_response: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    gateway_refund_id: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract redirect-based payment gateway."""

    name: str = "GATEWAY"

    @abstractmethod
    def create_checkout(
        self,
        amount: float,
        currency: str,
        reference: str,
        idempotency_key: str,
        callback_url: str,
    ) -> CheckoutSession:
        """Open (or return the already-open) hosted checkout for an idempotency key."""
        ...

    @abstractmethod
    def fetch_status(self, transaction_ref: str) -> GatewayStatus:
        """Pull the current outcome of a checkout session."""
        ...

    @abstractmethod
    def refund(self, transaction_ref: str, amount: float, reason: str) -> RefundResult:
        ...
