"""
Data models for Vision Print Orders.

This module contains dataclasses for:
- ProductConfig: What the user picks (product type, size, finish, quantity)
- PriceBreakdown: Integer-cent price for one configuration
- ImageValidationResult: Print quality verdict for an image at a size
- ShippingAddress / Order: The persisted print order
- SubmissionResult: Outcome of one submit attempt
- Ok / PartialFailure: Outcome of best-effort side effects

Everything handed across threads is frozen (immutable). ShippingAddress is
the one mutable model; the wizard copies it before sharing.
"""

from .product import Finish, PrintSize, ProductConfig, ProductType
from .pricing import PriceBreakdown, format_money
from .validation import ImageValidationResult, QualityLevel
from .order import Order, OrderStatus, ShippingAddress
from .submission import SubmissionResult, SubmissionStatus
from .outcome import Ok, Outcome, PartialFailure

__all__ = [
    # Product models
    "ProductType",
    "PrintSize",
    "Finish",
    "ProductConfig",
    # Pricing
    "PriceBreakdown",
    "format_money",
    # Validation
    "QualityLevel",
    "ImageValidationResult",
    # Order models
    "Order",
    "OrderStatus",
    "ShippingAddress",
    # Submission
    "SubmissionResult",
    "SubmissionStatus",
    # Outcomes
    "Ok",
    "PartialFailure",
    "Outcome",
]
