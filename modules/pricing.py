"""Pricing engine for print products."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union
import logging

from core.exceptions import PricingError
from models.pricing import PriceBreakdown
from models.product import (
    Finish,
    PrintSize,
    ProductConfig,
    ProductType,
    parse_finish,
    parse_product_type,
    parse_size,
)
from modules.rate_table import RateTable


class PricingEngine:
    """
    Maps a product configuration to a price breakdown.

    Pure: the same inputs always give the same breakdown. There is no cache,
    so a changed configuration can never be served a stale price.

    Formula:
        subtotal = (base + gloss surcharge) * quantity
        discount = subtotal * discount rate   (only when eligible)
        total    = subtotal - discount + shipping
    """

    def __init__(self, rate_table: Optional[RateTable] = None) -> None:
        self.rate_table = rate_table or RateTable()
        self.logger = logging.getLogger(__name__)

    def price(
        self,
        size: Union[str, PrintSize],
        finish: Union[str, Finish, None],
        product_type: Union[str, ProductType],
        quantity: int = 1,
        discount_eligible: bool = False,
    ) -> PriceBreakdown:
        """
        Price one configuration.

        Raises:
            PricingError: Unknown product/size/finish or quantity < 1
        """
        ptype, psize, pfinish = self._parse(product_type, size, finish)

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise PricingError(ptype.value, psize.value, f"invalid quantity {quantity!r}")

        entry = self.rate_table.lookup(ptype, psize)
        if entry is None:
            raise PricingError(ptype.value, psize.value)

        # Canvas has no finish: never priced, never part of the SKU
        if not ptype.has_finish:
            pfinish = None
        elif pfinish is None:
            pfinish = Finish.MATTE

        unit_price = entry.base_price_cents + self._finish_surcharge(ptype, pfinish)
        subtotal = unit_price * quantity
        discount = self._discount(subtotal) if discount_eligible else 0

        self.logger.debug(
            f"Priced {ptype.value} {psize.value} finish={pfinish.value if pfinish else None} "
            f"qty={quantity}: subtotal={subtotal} discount={discount}"
        )

        return PriceBreakdown(
            subtotal=subtotal,
            discount_amount=discount,
            shipping_cost=self.rate_table.shipping_cost_cents,
            sku=self.build_sku(ptype, psize, pfinish),
        )

    def price_config(self, config: ProductConfig, discount_eligible: bool = False) -> PriceBreakdown:
        """Convenience wrapper taking a ProductConfig."""
        config = config.normalized()
        return self.price(
            size=config.size,
            finish=config.finish,
            product_type=config.product_type,
            quantity=config.quantity,
            discount_eligible=discount_eligible,
        )

    def quote_all_sizes(
        self,
        product_type: Union[str, ProductType],
        finish: Union[str, Finish, None] = None,
        discount_eligible: bool = False,
    ) -> Dict[str, PriceBreakdown]:
        """Single-unit quote for every size offered for the product type."""
        ptype = self._parse_product_type(product_type)
        return {
            size.value: self.price(size, finish, ptype, 1, discount_eligible)
            for size in self.rate_table.sizes_for(ptype)
        }

    def build_sku(
        self, product_type: ProductType, size: PrintSize, finish: Optional[Finish]
    ) -> str:
        """
        Deterministic SKU for the fulfillment vendor.

        Examples:
            poster 18x24 matte -> GLOBAL-PHO-18X24-MATTE
            canvas 24x36       -> GLOBAL-CAN-24X36
        """
        entry = self.rate_table.lookup(product_type, size)
        if entry is None:
            raise PricingError(product_type.value, size.value)
        if product_type.has_finish and finish is not None:
            return f"{entry.sku_stem}-{finish.value.upper()}"
        return entry.sku_stem

    def _finish_surcharge(self, product_type: ProductType, finish: Optional[Finish]) -> int:
        if product_type is ProductType.POSTER and finish is Finish.GLOSS:
            return self.rate_table.gloss_surcharge_cents
        return 0

    def _discount(self, subtotal: int) -> int:
        """Discount in cents, rounded half-up."""
        amount = (Decimal(subtotal) * self.rate_table.discount_rate).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return min(int(amount), subtotal)

    def _parse(self, product_type, size, finish):
        ptype = self._parse_product_type(product_type)
        try:
            psize = parse_size(size)
        except ValueError:
            raise PricingError(ptype.value, str(size), "unknown size") from None
        try:
            pfinish = parse_finish(finish)
        except ValueError:
            # A bogus finish on a canvas is ignored like any other canvas finish
            if not ptype.has_finish:
                pfinish = None
            else:
                raise PricingError(ptype.value, psize.value, f"unknown finish {finish!r}") from None
        return ptype, psize, pfinish

    @staticmethod
    def _parse_product_type(product_type) -> ProductType:
        try:
            return parse_product_type(product_type)
        except ValueError:
            raise PricingError(str(product_type), "-", "unknown product type") from None
