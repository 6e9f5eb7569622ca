"""
Customer profile lookups used when a print wizard opens.

Both lookups are best-effort: if they fail the wizard still opens, without
the first-order discount and with an empty shipping form. Failures come
back as PartialFailure rather than being swallowed.

    - discount_eligibility: first order ever -> eligible for the discount
    - last_shipping_address: address of the most recent order, for prefill
"""

from __future__ import annotations

from typing import Optional

from core.exceptions import VisionPrintError
from models.order import ShippingAddress
from models.outcome import Ok, Outcome, PartialFailure
from services.order_store import OrderStore
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


class ProfileService:
    """Reads eligibility and prefill data from the order store."""

    def __init__(self, order_store: OrderStore):
        self._order_store = order_store

    def discount_eligibility(self, user_id: str) -> Outcome[bool]:
        """Eligible iff the user has never placed an order."""
        if not user_id:
            return Ok(False)
        try:
            count = self._order_store.count_orders(user_id)
        except VisionPrintError as e:
            logger.warning(f"Discount eligibility check failed for {user_id}: {e}")
            return PartialFailure(reason="Could not check discount eligibility", fallback=False)
        return Ok(count == 0)

    def last_shipping_address(self, user_id: str) -> Outcome[Optional[ShippingAddress]]:
        if not user_id:
            return Ok(None)
        try:
            address = self._order_store.get_last_shipping_address(user_id)
        except VisionPrintError as e:
            logger.warning(f"Shipping prefill failed for {user_id}: {e}")
            return PartialFailure(reason="Could not load your last shipping address", fallback=None)
        return Ok(address)
