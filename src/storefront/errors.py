"""Failure taxonomy of the storefront core.

Input problems are caught locally as ValidationError before any request is
sent. Anything the store rejects, or any request that never got an answer, is
an ApiError. Transport failures carry status code 0 and error code
``NETWORK_ERROR``.
"""

NETWORK_ERROR = "NETWORK_ERROR"

USER_MESSAGES = {
    "INSUFFICIENT_STOCK": "Not enough stock available",
    "PAYMENT_IN_PROGRESS": "A payment for this order is already in progress",
    "ORDER_ALREADY_PAID": "This order has already been paid",
    "FORBIDDEN": "You do not have permission to perform this action",
    "UNAUTHENTICATED": "Please sign in to continue",
    "INVALID_TRANSITION": "This status change is not allowed",
    "GATEWAY_UNAVAILABLE": "The payment provider is unavailable. Please try again.",
    NETWORK_ERROR: "Could not reach the store. Check your connection and try again.",
}


class StorefrontError(Exception):
    pass


class ValidationError(StorefrontError):
    """Local input problems, keyed by field."""

    def __init__(self, messages: dict[str, list[str]]):
        super().__init__(messages)
        self.messages = messages


class ApiError(StorefrontError):
    def __init__(self, status_code: int, message: str, error_code: str | None = None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    @property
    def is_network_error(self) -> bool:
        return self.status_code == 0

    def user_message(self, default: str | None = None) -> str:
        """Message fit for display: known error codes first, then the store's own wording."""
        if self.error_code in USER_MESSAGES:
            return USER_MESSAGES[self.error_code]
        if default is not None and (self.is_network_error or self.status_code >= 500 or not self.message):
            return default
        return self.message or default or "An unexpected error occurred"

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code}, error_code={self.error_code!r}, message={self.message!r})"


class VerificationError(StorefrontError):
    """A payment's status could not be checked; says nothing about the payment itself."""

    def __init__(self, payment_id: str, cause: ApiError):
        super().__init__(f"Could not verify payment {payment_id}")
        self.payment_id = payment_id
        self.cause = cause


class EmptyCart(StorefrontError):
    pass


class LineBusy(StorefrontError):
    """Another mutation of the same cart line is still in flight."""

    def __init__(self, key: str):
        super().__init__(f"Cart line {key} is being updated")
        self.key = key


class TransitionNotOffered(StorefrontError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Moving an order from {current} to {target} is not offered")
        self.current = current
        self.target = target
