"""Payment coordination: initiate, redirect, verify.

One idempotency key is held per order for the attempt in progress. It is sent
again on every resubmission (double submit, back navigation, a retry after a
lost response) until the attempt is known to have FAILED or been CANCELLED, so
the store never opens a second charge for one attempt.

Verification is a pull from the store and may be repeated freely. Concurrent
verifications of one payment share a single request.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

import structlog
from shared.lifecycle import RETRYABLE_PAYMENT_STATUSES, TERMINAL_PAYMENT_STATUSES, PaymentStatus

from storefront.api import StoreApiClient
from storefront.config import StorefrontSettings
from storefront.errors import ApiError, ValidationError, VerificationError
from storefront.models import Order, Payment
from storefront.notices import NoticeBoard, NoticeScope
from storefront.view import ViewToken

logger = structlog.get_logger(__name__)


class PaymentAction(Enum):
    PAY_NOW = "PAY_NOW"
    COMPLETE_PAYMENT = "COMPLETE_PAYMENT"
    CHECK_STATUS = "CHECK_STATUS"
    RETRY_PAYMENT = "RETRY_PAYMENT"
    NONE = "NONE"


def payment_actions(order: Order | None, payment: Payment | None) -> list[PaymentAction]:
    """Payment actions to offer for an order, most relevant first."""
    if order is None or not order.is_payable:
        return []
    if payment is None:
        return [PaymentAction.PAY_NOW]
    if payment.status == PaymentStatus.PENDING:
        return [PaymentAction.COMPLETE_PAYMENT, PaymentAction.CHECK_STATUS]
    if payment.status in RETRYABLE_PAYMENT_STATUSES:
        return [PaymentAction.RETRY_PAYMENT]
    return []


def next_payment_action(order: Order | None, payment: Payment | None) -> PaymentAction:
    actions = payment_actions(order, payment)
    return actions[0] if actions else PaymentAction.NONE


@dataclass(frozen=True)
class CheckoutRedirect:
    payment_id: str
    checkout_url: str
    idempotency_key: str


@dataclass
class PaymentState:
    """What the order page shows after loading or verifying."""

    order: Order
    payment: Payment | None
    verified: bool = False

    @property
    def action(self) -> PaymentAction:
        return next_payment_action(self.order, self.payment)


def has_return_marker(params) -> bool:
    params = params or {}
    return str(params.get("verify", "")).lower() == "true" or "status" in params


class PaymentCoordinator:
    def __init__(
        self,
        api: StoreApiClient,
        notices: NoticeBoard,
        settings: StorefrontSettings | None = None,
    ) -> None:
        self.api = api
        self.notices = notices
        self.settings = settings or api.settings
        self.orders: dict[str, Order] = {}
        self.payments: dict[str, Payment] = {}
        self._attempt_keys: dict[str, str] = {}
        self._failures: dict[str, ApiError] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._auto_verified: set[str] = set()

    # -------------------------------------------------------------------
    # Initiation
    # -------------------------------------------------------------------
    def attempt_key(self, order_id: str) -> str | None:
        return self._attempt_keys.get(order_id)

    def last_failure(self, order_id: str) -> ApiError | None:
        return self._failures.get(order_id)

    async def initiate(
        self,
        order_id: str,
        callback_url: str,
        idempotency_key: str | None = None,
        guest_email: str | None = None,
    ) -> CheckoutRedirect | None:
        """Open (or re-open) the order's payment attempt and return where to send the shopper.

        Failures post a PAYMENT notice and return None; the error is kept in
        `last_failure(order_id)`.
        """
        key = idempotency_key or self._attempt_keys.get(order_id) or uuid4().hex
        self._attempt_keys[order_id] = key
        self._failures.pop(order_id, None)

        try:
            payment = await self.api.initiate_payment(order_id, callback_url, key, guest_email=guest_email)
        except ApiError as exc:
            if exc.error_code == "PAYMENT_IN_PROGRESS":
                resumed = await self._resume_pending(order_id)
                if resumed is not None:
                    return resumed
            self._failures[order_id] = exc
            logger.warning(
                "Payment initiation failed",
                order_id=order_id,
                idempotency_key=key,
                status_code=exc.status_code,
                error_code=exc.error_code,
            )
            self.notices.post(
                NoticeScope.PAYMENT,
                exc.user_message("Failed to initiate payment"),
                key=order_id,
                error_code=exc.error_code,
            )
            return None

        self._remember(payment)
        if payment.status in RETRYABLE_PAYMENT_STATUSES or not payment.checkout_url:
            self._attempt_keys.pop(order_id, None)
            self.notices.post(NoticeScope.PAYMENT, "Failed to initiate payment", key=order_id)
            return None

        logger.info("Payment redirect ready", order_id=order_id, payment_id=payment.id, idempotency_key=key)
        return CheckoutRedirect(payment_id=payment.id, checkout_url=payment.checkout_url, idempotency_key=key)

    async def _resume_pending(self, order_id: str) -> CheckoutRedirect | None:
        """Another key already holds a pending attempt: continue that one instead."""
        try:
            payment = await self.api.current_payment(order_id)
        except ApiError:
            return None
        if payment is None or payment.status != PaymentStatus.PENDING or not payment.checkout_url:
            return None

        self._remember(payment)
        self._attempt_keys[order_id] = payment.idempotency_key
        logger.info("Resumed pending payment attempt", order_id=order_id, payment_id=payment.id)
        return CheckoutRedirect(
            payment_id=payment.id,
            checkout_url=payment.checkout_url,
            idempotency_key=payment.idempotency_key,
        )

    async def retry(self, order_id: str, callback_url: str, guest_email: str | None = None) -> CheckoutRedirect | None:
        """Start a new attempt after the current one FAILED or was CANCELLED."""
        try:
            current = await self.api.current_payment(order_id)
        except ApiError as exc:
            self.notices.post(
                NoticeScope.PAYMENT, exc.user_message("Failed to load payment"), key=order_id, error_code=exc.error_code
            )
            return None
        if current is None or current.status not in RETRYABLE_PAYMENT_STATUSES:
            raise ValidationError({"payment": ["Only failed or cancelled payments can be retried"]})

        self._attempt_keys.pop(order_id, None)
        return await self.initiate(order_id, callback_url, guest_email=guest_email)

    # -------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------
    async def verify(self, payment_id: str) -> Payment:
        """Pull the payment's status; a SUCCESS also refreshes its order before returning.

        Raises VerificationError when the status could not be obtained.
        """
        task = self._inflight.get(payment_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._verify(payment_id))
            self._inflight[payment_id] = task
            task.add_done_callback(lambda _: self._inflight.pop(payment_id, None))
        return await asyncio.shield(task)

    async def _verify(self, payment_id: str) -> Payment:
        try:
            payment = await self.api.verify_payment(payment_id)
        except ApiError as exc:
            logger.warning("Payment verification failed", payment_id=payment_id, error_code=exc.error_code)
            raise VerificationError(payment_id, exc) from exc

        self._remember(payment)
        if payment.status == PaymentStatus.SUCCESS:
            try:
                self.orders[payment.order_id] = await self.api.get_order(payment.order_id)
            except ApiError as exc:
                raise VerificationError(payment_id, exc) from exc

        logger.info("Payment verified", payment_id=payment_id, order_id=payment.order_id, status=payment.status.value)
        return payment

    # -------------------------------------------------------------------
    # Order page
    # -------------------------------------------------------------------
    async def load(self, order_id: str) -> PaymentState:
        order = await self.api.get_order(order_id)
        self.orders[order_id] = order
        payment = None
        if order.current_payment_id:
            payment = await self.api.current_payment(order_id)
            if payment is not None:
                self._remember(payment)
        return PaymentState(order=order, payment=payment)

    async def handle_return(self, order_id: str, params=None, view: ViewToken | None = None) -> PaymentState | None:
        """Load the order page and reconcile its pending payment once.

        The check runs on the first load of each pending payment whether or not
        the gateway's return marker survived the redirect, unless the settings
        require the marker.
        """
        try:
            state = await self.load(order_id)
        except ApiError as exc:
            self.notices.post(
                NoticeScope.ORDER, exc.user_message("Failed to load order"), key=order_id, error_code=exc.error_code
            )
            return None

        payment = state.payment
        if payment is None or payment.status in TERMINAL_PAYMENT_STATUSES or payment.id in self._auto_verified:
            return state
        if self.settings.require_return_marker and not has_return_marker(params):
            return state

        self._auto_verified.add(payment.id)
        return await self._reconcile(state, view)

    async def check_status(self, order_id: str, view: ViewToken | None = None) -> PaymentState | None:
        """Explicit re-check of the order's current payment."""
        try:
            state = await self.load(order_id)
        except ApiError as exc:
            self.notices.post(
                NoticeScope.ORDER, exc.user_message("Failed to load order"), key=order_id, error_code=exc.error_code
            )
            return None
        if state.payment is None or state.payment.status in TERMINAL_PAYMENT_STATUSES:
            return state
        return await self._reconcile(state, view)

    async def next_action(self, order_id: str) -> PaymentAction:
        state = await self.load(order_id)
        return state.action

    async def _reconcile(self, state: PaymentState, view: ViewToken | None) -> PaymentState | None:
        order_id = state.order.id
        try:
            payment = await self.verify(state.payment.id)
        except VerificationError as exc:
            if view is None or view.live:
                self.notices.post(
                    NoticeScope.PAYMENT,
                    exc.cause.user_message("Failed to verify payment status"),
                    key=order_id,
                    error_code="VERIFICATION_ERROR",
                )
            return state

        if view is not None and not view.live:
            return None
        if payment.status == PaymentStatus.FAILED:
            self.notices.post(NoticeScope.PAYMENT, payment.failure_reason or "Payment failed", key=order_id)
        return PaymentState(order=self.orders.get(order_id, state.order), payment=payment, verified=True)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _remember(self, payment: Payment) -> None:
        """Track a live attempt; a settled one drops its id and its order's attempt key."""
        if payment.status not in TERMINAL_PAYMENT_STATUSES:
            self.payments[payment.id] = payment
            return
        self.payments.pop(payment.id, None)
        self._auto_verified.discard(payment.id)
        if self._attempt_keys.get(payment.order_id) == payment.idempotency_key:
            self._attempt_keys.pop(payment.order_id, None)
