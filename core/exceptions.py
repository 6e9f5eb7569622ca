"""
Custom exceptions for Vision Print Orders.

Exception Hierarchy:
    VisionPrintError (base)
    ├── ConfigurationError       - Developer bug (bad rate table, unknown size)
    │   └── PricingError         - No price for a (product, size) pair
    ├── OrderStoreError          - Persistence failure
    ├── CheckoutGatewayError     - Payment backend rejected the request
    ├── SubmissionTimeoutError   - Safety timer fired before submission settled
    └── WizardNotFoundError      - Unknown or closed wizard session

Usage:
    ConfigurationError should fail loudly in tests; callers must never paper
    over it with a zero price.
    Submission errors are caught at the wizard's submission boundary and turned
    into a retryable state with a user-facing message.

Image quality problems are NOT exceptions - they are reported inline through
ImageValidationResult.
"""

from typing import Optional, Dict, Any


# Longest gateway error text we hand back to the user verbatim
MAX_USER_MESSAGE_LENGTH = 200


class VisionPrintError(Exception):
    """
    Base exception for all Vision Print errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    @property
    def user_message(self) -> str:
        """Message safe to show in the wizard (no debugging details)."""
        return self.message


# =============================================================================
# DEVELOPER ERRORS - should never reach a customer in production
# =============================================================================

class ConfigurationError(VisionPrintError):
    """
    The pipeline was asked for something its configuration does not define.

    Typical causes:
    - A size offered by the UI is missing from the rate table
    - A product type was added without print dimensions
    """


class PricingError(ConfigurationError):
    """
    No price exists for the requested product combination.

    The engine refuses to invent one: a fallback price of zero would let an
    order through for free.
    """

    def __init__(self, product_type: str, size: str, reason: str = "no rate table entry"):
        message = f"Cannot price {product_type} {size}: {reason}"
        details = {
            "product_type": product_type,
            "size": size,
            "resolution": "Add the combination to the rate table"
        }
        super().__init__(message, details)
        self.product_type = product_type
        self.size = size


# =============================================================================
# RUNTIME ERRORS - wizard stays usable, user can retry or go back
# =============================================================================

class OrderStoreError(VisionPrintError):
    """
    Order persistence failed.

    Wraps the underlying database error in ``cause`` for logging.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        details = {"cause": repr(cause)} if cause else None
        super().__init__(message, details)
        self.cause = cause


class CheckoutGatewayError(VisionPrintError):
    """
    The checkout backend explicitly returned an error.

    The order stays in Pending status for manual reconciliation. ``cause``
    holds the underlying exception (HTTP error, JSON decode error) and
    ``status_code`` the HTTP status when there was one.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if cause is not None:
            details["cause"] = repr(cause)
        super().__init__(message, details)
        self.cause = cause
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        if len(self.message) > MAX_USER_MESSAGE_LENGTH:
            return self.message[:MAX_USER_MESSAGE_LENGTH - 3] + "..."
        return self.message


class SubmissionTimeoutError(VisionPrintError):
    """
    Order creation or checkout did not settle within the safety window.

    The request may still complete on the server. Retrying is safe because the
    wizard reuses the same idempotency key.
    """

    def __init__(self, timeout_seconds: float, idempotency_key: Optional[str] = None):
        message = "Request timed out. Please try again."
        details = {
            "timeout_seconds": timeout_seconds,
            "resolution": "Retry - the same idempotency key prevents a duplicate order"
        }
        if idempotency_key:
            details["idempotency_key"] = idempotency_key
        super().__init__(message, details)
        self.timeout_seconds = timeout_seconds
        self.idempotency_key = idempotency_key


class WizardNotFoundError(VisionPrintError):
    """No open wizard session with the given id."""

    def __init__(self, wizard_id: str):
        super().__init__(f"No open print wizard with id {wizard_id}", {"wizard_id": wizard_id})
        self.wizard_id = wizard_id
