"""Order placement: cart → order → payment handoff.

The order is created first and is never rolled back. If opening the payment
fails afterwards, the order stays PENDING without a payment and the order page
offers "Pay Now".
"""

from dataclasses import dataclass

import structlog
from pydantic import ValidationError as SchemaError
from shared.contact import is_valid_email

from storefront.api import StoreApiClient
from storefront.config import StorefrontSettings
from storefront.errors import ApiError, EmptyCart, ValidationError
from storefront.models import Cart, GuestDetails, ShippingAddress
from storefront.notices import NoticeBoard, NoticeScope
from storefront.payment import CheckoutRedirect, PaymentCoordinator

logger = structlog.get_logger(__name__)

PAYMENT_METHODS = ("CARD", "MOBILE_MONEY")
MAX_NOTES_LENGTH = 500
REQUIRED_ADDRESS_FIELDS = ("street", "city", "region", "country")


@dataclass(frozen=True)
class PlacementResult:
    order_id: str
    redirect: CheckoutRedirect | None = None
    payment_error: ApiError | None = None


def validate_guest(guest) -> GuestDetails:
    data = guest.model_dump() if isinstance(guest, GuestDetails) else dict(guest or {})
    name = (data.get("guest_name") or data.get("name") or "").strip()
    email = (data.get("guest_email") or data.get("email") or "").strip()
    errors = {}
    if not name:
        errors["guest_name"] = ["Name is required"]
    if not is_valid_email(email):
        errors["guest_email"] = ["Please enter a valid email address"]
    if errors:
        raise ValidationError(errors)
    return GuestDetails(guest_name=name, guest_email=email, guest_phone=data.get("guest_phone") or data.get("phone"))


def validate_shipping(shipping) -> ShippingAddress:
    data = shipping.model_dump() if isinstance(shipping, ShippingAddress) else dict(shipping or {})
    missing = {
        field: [f"{field.capitalize()} is required"]
        for field in REQUIRED_ADDRESS_FIELDS
        if not str(data.get(field) or "").strip()
    }
    if missing:
        raise ValidationError(missing)
    try:
        return ShippingAddress.model_validate(data)
    except SchemaError as exc:
        raise ValidationError({"shipping_address": [error["msg"] for error in exc.errors()]}) from exc


class OrderPlacement:
    def __init__(
        self,
        api: StoreApiClient,
        payments: PaymentCoordinator,
        notices: NoticeBoard,
        settings: StorefrontSettings | None = None,
    ) -> None:
        self.api = api
        self.payments = payments
        self.notices = notices
        self.settings = settings or api.settings

    async def place_order(
        self,
        cart: Cart,
        shipping,
        guest=None,
        payment_method: str = "CARD",
        notes: str | None = None,
    ) -> PlacementResult | None:
        """Create the order from the cart and hand over to payment.

        Raises EmptyCart or ValidationError before anything is sent. Returns
        None when the store refused the order (an ORDER notice is posted).
        """
        if cart is None or cart.is_empty:
            raise EmptyCart("Your cart is empty")

        guest_details = validate_guest(guest) if guest is not None else None
        address = validate_shipping(shipping)
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError({"payment_method": ["Please select a payment method"]})
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError({"notes": [f"Notes must be at most {MAX_NOTES_LENGTH} characters"]})

        try:
            order = await self.api.place_order(
                address,
                payment_method,
                notes=notes,
                guest=guest_details.model_dump(by_alias=True) if guest_details else None,
            )
        except ApiError as exc:
            logger.warning("Order placement failed", status_code=exc.status_code, error_code=exc.error_code)
            self.notices.post(
                NoticeScope.ORDER,
                exc.user_message("Failed to process order. Please try again."),
                error_code=exc.error_code,
                blocking=True,
            )
            return None

        logger.info("Order placed", order_id=order.id, total_amount=order.total_amount, guest=guest_details is not None)
        self.payments.orders[order.id] = order

        redirect = await self.payments.initiate(
            order.id,
            self.settings.order_return_url(order.id),
            guest_email=guest_details.guest_email if guest_details else None,
        )
        return PlacementResult(
            order_id=order.id,
            redirect=redirect,
            payment_error=self.payments.last_failure(order.id) if redirect is None else None,
        )
