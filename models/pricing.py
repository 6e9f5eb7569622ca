"""Price breakdown model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Any


def format_money(cents: int) -> str:
    """Format minor units as a dollar string, e.g. 1680 -> '$16.80'."""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}${cents // 100}.{cents % 100:02d}"


@dataclass(frozen=True)
class PriceBreakdown:
    """
    Priced quote for one product configuration.

    All amounts are integer minor units (cents). The total is derived, never
    stored independently, so ``total == subtotal - discount_amount +
    shipping_cost`` holds by construction.
    """

    subtotal: int
    discount_amount: int
    shipping_cost: int
    sku: str

    def __post_init__(self):
        if self.subtotal < 0 or self.discount_amount < 0 or self.shipping_cost < 0:
            raise ValueError("price components must be non-negative")
        if self.discount_amount > self.subtotal:
            raise ValueError("discount cannot exceed subtotal")

    @property
    def total(self) -> int:
        return self.subtotal - self.discount_amount + self.shipping_cost

    @property
    def has_discount(self) -> bool:
        return self.discount_amount > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discountAmount": self.discount_amount,
            "shippingCost": self.shipping_cost,
            "total": self.total,
            "sku": self.sku,
            "display": {
                "subtotal": format_money(self.subtotal),
                "discountAmount": format_money(self.discount_amount),
                "shippingCost": format_money(self.shipping_cost),
                "total": format_money(self.total),
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceBreakdown":
        return cls(
            subtotal=int(data["subtotal"]),
            discount_amount=int(data.get("discountAmount", 0)),
            shipping_cost=int(data.get("shippingCost", 0)),
            sku=data.get("sku", ""),
        )
