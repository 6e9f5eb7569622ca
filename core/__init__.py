"""
Core module for Vision Print Orders.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- checkout_gateway: HTTP client for the external checkout backend
"""

from .exceptions import (
    VisionPrintError,
    ConfigurationError,
    PricingError,
    OrderStoreError,
    CheckoutGatewayError,
    SubmissionTimeoutError,
    WizardNotFoundError,
)
from .checkout_gateway import CheckoutGateway, SIMULATION

__all__ = [
    "VisionPrintError",
    "ConfigurationError",
    "PricingError",
    "OrderStoreError",
    "CheckoutGatewayError",
    "SubmissionTimeoutError",
    "WizardNotFoundError",
    "CheckoutGateway",
    "SIMULATION",
]
