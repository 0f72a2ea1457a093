"""Exceptions raised by the storefront services.

Route modules let these propagate; the handlers registered in
``storefront.main`` turn them into user-facing notices.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailed(StorefrontError):
    """Missing field, empty cart, ineligible payment method and the like."""


class CouponRejected(StorefrontError):
    """A coupon failed one of the eligibility checks."""

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class NotFound(StorefrontError):
    status_code = 404


class InvalidStatusTransition(StorefrontError):
    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")


class OrderNotDeletable(StorefrontError):
    status_code = 409

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Only delivered orders can be deleted (status is '{status}')")


class BackendError(StorefrontError):
    """A read or write against the hosted database failed."""

    status_code = 502

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__("Something went wrong. Please try again.")


class OrderPlacementError(StorefrontError):
    """The order sequence failed after validation passed."""

    status_code = 502

    def __init__(self, step: str, order_id: Optional[str] = None):
        self.step = step
        self.order_id = order_id
        super().__init__("Failed to place order. Please try again.")
