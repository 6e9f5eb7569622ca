"""
Print Rate Table Module

Static pricing configuration for the print products:
- Base price per (product type, size) in minor currency units
- Gloss surcharge for posters
- First-order discount rate
- Flat shipping cost

Changing prices means editing this table (or the matching environment
variables in config.py), never the PricingEngine.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Tuple
import logging

from models.product import ProductType, PrintSize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateEntry:
    """Base price and vendor SKU stem for one product/size."""
    base_price_cents: int
    sku_stem: str  # e.g. "GLOBAL-PHO-18X24"


# Default catalogue (USD cents)
DEFAULT_RATES: Dict[Tuple[ProductType, PrintSize], RateEntry] = {
    (ProductType.POSTER, PrintSize.SMALL): RateEntry(1800, "GLOBAL-PHO-12X18"),
    (ProductType.POSTER, PrintSize.MEDIUM): RateEntry(2400, "GLOBAL-PHO-18X24"),
    (ProductType.POSTER, PrintSize.LARGE): RateEntry(3400, "GLOBAL-PHO-24X36"),
    (ProductType.CANVAS, PrintSize.SMALL): RateEntry(4900, "GLOBAL-CAN-12X18"),
    (ProductType.CANVAS, PrintSize.MEDIUM): RateEntry(5900, "GLOBAL-CAN-18X24"),
    (ProductType.CANVAS, PrintSize.LARGE): RateEntry(7900, "GLOBAL-CAN-24X36"),
}

DEFAULT_GLOSS_SURCHARGE_CENTS = 500
DEFAULT_DISCOUNT_RATE = Decimal("0.30")
DEFAULT_SHIPPING_COST_CENTS = 0


@dataclass(frozen=True)
class RateTable:
    """Complete pricing configuration consumed by PricingEngine."""
    rates: Dict[Tuple[ProductType, PrintSize], RateEntry] = field(
        default_factory=lambda: dict(DEFAULT_RATES)
    )
    gloss_surcharge_cents: int = DEFAULT_GLOSS_SURCHARGE_CENTS
    discount_rate: Decimal = DEFAULT_DISCOUNT_RATE
    shipping_cost_cents: int = DEFAULT_SHIPPING_COST_CENTS

    def __post_init__(self):
        if not Decimal("0") <= self.discount_rate <= Decimal("1"):
            raise ValueError(f"discount_rate must be within [0, 1], got {self.discount_rate}")
        if self.gloss_surcharge_cents < 0 or self.shipping_cost_cents < 0:
            raise ValueError("surcharge and shipping cost must be non-negative")

    def lookup(self, product_type: ProductType, size: PrintSize) -> Optional[RateEntry]:
        """Rate entry for the pair, or None when the catalogue lacks it."""
        return self.rates.get((product_type, size))

    def sizes_for(self, product_type: ProductType) -> list:
        """Sizes offered for a product type, smallest first."""
        sizes = [size for (ptype, size) in self.rates if ptype is product_type]
        return sorted(sizes, key=lambda s: s.area_sq_in)

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for the pricing API."""
        return {
            "rates": {
                f"{ptype.value}:{size.value}": {
                    "basePrice": entry.base_price_cents,
                    "skuStem": entry.sku_stem,
                }
                for (ptype, size), entry in self.rates.items()
            },
            "glossSurcharge": self.gloss_surcharge_cents,
            "discountRate": str(self.discount_rate),
            "shippingCost": self.shipping_cost_cents,
        }


def get_rate_table(config=None) -> RateTable:
    """
    Build the rate table, applying surcharge/discount/shipping overrides from
    a Flask config mapping or Config class when given.
    """
    if config is None:
        return RateTable()

    def _get(key, default):
        if isinstance(config, dict):
            return config.get(key, default)
        return getattr(config, key, default)

    table = RateTable(
        gloss_surcharge_cents=int(_get("GLOSS_SURCHARGE_CENTS", DEFAULT_GLOSS_SURCHARGE_CENTS)),
        discount_rate=Decimal(str(_get("DISCOUNT_RATE", DEFAULT_DISCOUNT_RATE))),
        shipping_cost_cents=int(_get("SHIPPING_COST_CENTS", DEFAULT_SHIPPING_COST_CENTS)),
    )
    logger.debug(
        "Rate table loaded: %d entries, gloss=%d, discount=%s, shipping=%d",
        len(table.rates), table.gloss_surcharge_cents,
        table.discount_rate, table.shipping_cost_cents,
    )
    return table
