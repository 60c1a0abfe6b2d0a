"""Configurable fake redirect gateway for development and testing.

Sessions are keyed by idempotency key, so repeated checkout requests for the
same key return the original session and never count as a second charge.
`complete()` plays the part of the shopper finishing (or abandoning) the
hosted checkout page.
"""

from urllib.parse import urlencode
from uuid import uuid4

from store.gateway.port import CheckoutSession, GatewayStatus, PaymentGateway, RefundResult

OUTCOMES = ("success", "failed", "cancelled")


class FakeGateway(PaymentGateway):
    """In-memory redirect gateway."""

    name = "FAKEPAY"

    def __init__(self, base_url: str = "https://checkout.fakepay.test") -> None:
        self.base_url = base_url.rstrip("/")
        self.calls: list[dict] = []
        self._sessions_by_key: dict[str, dict] = {}
        self._sessions_by_ref: dict[str, dict] = {}
        self.unavailable = False

    @property
    def charges(self) -> int:
        """Number of distinct charges opened at the gateway."""
        return len(self._sessions_by_key)

    def create_checkout(
        self,
        amount: float,
        currency: str,
        reference: str,
        idempotency_key: str,
        callback_url: str,
    ) -> CheckoutSession:
        self.calls.append(
            {
                "method": "create_checkout",
                "amount": amount,
                "currency": currency,
                "reference": reference,
                "idempotency_key": idempotency_key,
            }
        )
        if self.unavailable:
            raise ConnectionError("Payment gateway unavailable")

        session = self._sessions_by_key.get(idempotency_key)
        if session is None:
            transaction_ref = f"fake_txn_{uuid4().hex[:12]}"
            session = {
                "transaction_ref": transaction_ref,
                "amount": amount,
                "currency": currency,
                "reference": reference,
                "callback_url": callback_url,
                "status": "pending",
                "failure_reason": None,
            }
            self._sessions_by_key[idempotency_key] = session
            self._sessions_by_ref[transaction_ref] = session

        return CheckoutSession(
            transaction_ref=session["transaction_ref"],
            checkout_url=f"{self.base_url}/pay/{session['transaction_ref']}",
        )

    def complete(self, transaction_ref: str, outcome: str = "success", failure_reason: str | None = None) -> str:
        """Finish a hosted checkout and return the URL the shopper is sent back to."""
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown outcome {outcome}")
        session = self._sessions_by_ref[transaction_ref]
        session["status"] = outcome
        session["failure_reason"] = failure_reason if outcome != "success" else None

        separator = "&" if "?" in session["callback_url"] else "?"
        return f"{session['callback_url']}{separator}{urlencode({'status': outcome, 'reference': transaction_ref})}"

    def fetch_status(self, transaction_ref: str) -> GatewayStatus:
        self.calls.append({"method": "fetch_status", "transaction_ref": transaction_ref})
        if self.unavailable:
            raise ConnectionError("Payment gateway unavailable")

        session = self._sessions_by_ref.get(transaction_ref)
        if session is None:
            return GatewayStatus(status="failed", failure_reason="Unknown transaction")
        return GatewayStatus(
            status=session["status"],
            failure_reason=session["failure_reason"],
            gateway_response=f"Session {session['status']}",
        )

    def refund(self, transaction_ref: str, amount: float, reason: str) -> RefundResult:
        self.calls.append(
            {"method": "refund", "transaction_ref": transaction_ref, "amount": amount, "reason": reason}
        )
        session = self._sessions_by_ref.get(transaction_ref)
        if session is None or session["status"] != "success":
            return RefundResult(success=False, failure_reason="Nothing to refund")
        session["status"] = "refunded"
        return RefundResult(success=True, gateway_refund_id=f"fake_ref_{uuid4().hex[:12]}")
