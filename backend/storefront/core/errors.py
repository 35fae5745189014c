# storefront/core/errors.py
"""
Checkout error taxonomy.

- ValidationError / AuthorizationError: blocked locally, the user sees `user_message`.
- GatewayError / PersistenceError: the user sees a generic notice, detail goes to the log.
- StorageError: client storage failed; logged, never shown.
"""
from typing import Optional

GENERIC_FAILURE = "Payment failed. Please try again."


class CheckoutError(Exception):
    user_message = GENERIC_FAILURE

    def __init__(self, message: str, *, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(CheckoutError):
    def __init__(self, message: str, *, user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message or message)


class AuthorizationError(CheckoutError):
    def __init__(self, message: str, *, user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message or message)


class GatewayError(CheckoutError):
    """Token fetch or settlement failed at the transport level or was rejected by the processor."""


class PaymentDeclined(GatewayError):
    """The processor answered and refused the charge; its message is safe to show."""

    def __init__(self, message: str):
        super().__init__(message, user_message=message)


class PersistenceError(CheckoutError):
    """Payment settled but the order record could not be written."""

    def __init__(self, message: str, *, transaction_id: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message)
        self.transaction_id = transaction_id


class StorageError(CheckoutError):
    """Client-side persistence failed (quota, disk, serialization)."""
