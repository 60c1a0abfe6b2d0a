"""Store-specific failures that need a structured error code on the wire.

Plain rule violations raise protean's ValidationError; the subclasses below add
an `error_code` the storefront maps to a distinct user-facing message.
"""

from protean.exceptions import ValidationError


class StockConflict(ValidationError):
    """Requested quantity exceeds the product's available stock."""

    error_code = "INSUFFICIENT_STOCK"
    status_code = 409


class PaymentConflict(ValidationError):
    """A payment attempt cannot be opened for the order in its current state."""

    status_code = 409

    def __init__(self, messages, error_code="PAYMENT_IN_PROGRESS"):
        super().__init__(messages)
        self.error_code = error_code


class InvalidTransition(ValidationError):
    error_code = "INVALID_TRANSITION"
    status_code = 400


class Forbidden(Exception):
    """The acting principal lacks the capability the operation requires."""

    error_code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(Forbidden):
    error_code = "UNAUTHENTICATED"
    status_code = 401


class GatewayUnavailable(Exception):
    """The payment gateway could not be reached; nothing was recorded."""

    error_code = "GATEWAY_UNAVAILABLE"
    status_code = 502

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
