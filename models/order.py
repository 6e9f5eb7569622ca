"""
Order data models.

These models represent a print order as it flows through the wizard:
configure -> ship -> pay.

    - ShippingAddress is mutable while the user fills in the form
    - Order is frozen: it is created once at submission and never changed
      by the wizard afterwards (status updates come from checkout webhooks)
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List

from models.pricing import PriceBreakdown
from models.product import ProductConfig, product_label


class OrderStatus(Enum):
    """
    Status of a print order.

    Lifecycle:
        PENDING -> SUBMITTED -> SHIPPED -> DELIVERED
    """

    PENDING = "pending"
    """Order persisted, payment not yet confirmed."""

    SUBMITTED = "submitted"
    """Paid and handed to the print vendor."""

    SHIPPED = "shipped"
    """Vendor reported dispatch."""

    DELIVERED = "delivered"
    """Carrier reported delivery."""


@dataclass
class ShippingAddress:
    """
    Where the print is sent.

    Captured on the SHIPPING step. Every field except ``line2`` is required
    before the wizard lets the user continue to payment.
    """

    name: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"

    REQUIRED_FIELDS = ("name", "line1", "city", "state", "postal_code", "country")

    def missing_fields(self) -> List[str]:
        """Names of required fields that are empty or whitespace."""
        return [
            name for name in self.REQUIRED_FIELDS
            if not (getattr(self, name) or "").strip()
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShippingAddress":
        return cls(
            name=data.get("name", "") or "",
            line1=data.get("line1", "") or "",
            line2=data.get("line2", "") or "",
            city=data.get("city", "") or "",
            state=data.get("state", "") or "",
            postal_code=data.get("postalCode", data.get("postal_code", "")) or "",
            country=data.get("country", "US") or "",
        )

    def copy(self) -> "ShippingAddress":
        return replace(self)

    @staticmethod
    def field_names() -> List[str]:
        return [f.name for f in fields(ShippingAddress)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Order:
    """
    A persisted print order.

    ``id`` may be empty when the wizard builds the order; the store assigns
    one on create. ``idempotency_key`` is the wizard's per-order key and is
    unique in the store.
    """

    user_id: str
    image_id: str
    image_url: str
    shipping: ShippingAddress
    config: ProductConfig
    price: PriceBreakdown
    discount_applied: bool
    idempotency_key: str
    id: str = ""
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def total(self) -> int:
        return self.price.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "imageId": self.image_id,
            "imageUrl": self.image_url,
            "shippingAddress": self.shipping.to_dict(),
            "config": self.config.to_dict(),
            "productLabel": product_label(self.config),
            "price": self.price.to_dict(),
            "discountApplied": self.discount_applied,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "idempotencyKey": self.idempotency_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        created_at = data.get("createdAt")
        return cls(
            id=data.get("id", ""),
            user_id=data.get("userId", ""),
            image_id=data.get("imageId", ""),
            image_url=data.get("imageUrl", ""),
            shipping=ShippingAddress.from_dict(data.get("shippingAddress", {})),
            config=ProductConfig.from_dict(data.get("config", {})),
            price=PriceBreakdown.from_dict(data["price"]),
            discount_applied=bool(data.get("discountApplied", False)),
            idempotency_key=data.get("idempotencyKey", ""),
            status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
            created_at=datetime.fromisoformat(created_at) if created_at else _utcnow(),
        )

    def with_identity(self, order_id: str) -> "Order":
        """Copy carrying the store-assigned id and Pending status."""
        return replace(self, id=order_id, status=OrderStatus.PENDING)
