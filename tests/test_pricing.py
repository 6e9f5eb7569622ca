"""
Unit tests for the PricingEngine and rate table.

Money is integer cents throughout; the display strings are only checked
where a scenario names a dollar amount.
"""

from decimal import Decimal

import pytest

from core.exceptions import PricingError
from models.pricing import PriceBreakdown, format_money
from models.product import Finish, PrintSize, ProductConfig, ProductType
from modules.pricing import PricingEngine
from modules.rate_table import RateEntry, RateTable, get_rate_table


# Fixtures

@pytest.fixture
def engine():
    """Pricing engine with the default catalogue."""
    return PricingEngine()


ALL_PAIRS = [(ptype, size) for ptype in ProductType for size in PrintSize]


# Tests for the named scenarios

class TestPricingScenarios:
    """Prices the wizard shows for well-known configurations."""

    def test_first_order_poster_gets_discount(self, engine):
        """Poster 18x24 matte, discount eligible -> $16.80."""
        price = engine.price("18x24", "matte", "poster", 1, discount_eligible=True)

        assert price.subtotal == 2400
        assert price.discount_amount == 720
        assert price.shipping_cost == 0
        assert price.total == 1680
        assert price.to_dict()["display"]["total"] == "$16.80"
        assert price.sku == "GLOBAL-PHO-18X24-MATTE"

    def test_canvas_ignores_gloss(self, engine):
        """Canvas 24x36 with gloss, not eligible -> $79.00 and no finish in SKU."""
        price = engine.price("24x36", "gloss", "canvas", 1, discount_eligible=False)

        assert price.subtotal == 7900
        assert price.discount_amount == 0
        assert price.total == 7900
        assert price.sku == "GLOBAL-CAN-24X36"
        assert format_money(price.total) == "$79.00"

    def test_gloss_poster_surcharge(self, engine):
        price = engine.price(PrintSize.MEDIUM, Finish.GLOSS, ProductType.POSTER)

        assert price.subtotal == 2400 + 500
        assert price.sku == "GLOBAL-PHO-18X24-GLOSS"

    def test_poster_without_finish_defaults_to_matte(self, engine):
        price = engine.price("12x18", None, "poster")

        assert price.subtotal == 1800
        assert price.sku.endswith("-MATTE")

    def test_quantity_multiplies_unit_price(self, engine):
        price = engine.price("18x24", "gloss", "poster", quantity=3)
        assert price.subtotal == (2400 + 500) * 3

    def test_price_config_matches_price(self, engine):
        config = ProductConfig(ProductType.CANVAS, PrintSize.SMALL, Finish.GLOSS, 2)
        assert engine.price_config(config) == engine.price("12x18", None, "canvas", 2)


# Tests for invariants over the whole catalogue

class TestPricingInvariants:
    """Properties that must hold for every (product, size) pair."""

    @pytest.mark.parametrize("ptype,size", ALL_PAIRS)
    @pytest.mark.parametrize("eligible", [True, False])
    def test_total_identity_and_non_negative(self, engine, ptype, size, eligible):
        for finish in (None, Finish.MATTE, Finish.GLOSS):
            price = engine.price(size, finish, ptype, 2, discount_eligible=eligible)

            assert price.total == price.subtotal - price.discount_amount + price.shipping_cost
            assert price.subtotal >= 0
            assert price.discount_amount >= 0
            assert price.total >= 0

    @pytest.mark.parametrize("ptype,size", ALL_PAIRS)
    def test_no_discount_when_not_eligible(self, engine, ptype, size):
        price = engine.price(size, Finish.GLOSS, ptype, discount_eligible=False)
        assert price.discount_amount == 0
        assert not price.has_discount

    @pytest.mark.parametrize("ptype,size", ALL_PAIRS)
    def test_discount_is_thirty_percent(self, engine, ptype, size):
        price = engine.price(size, Finish.MATTE, ptype, discount_eligible=True)
        assert price.discount_amount == round(price.subtotal * 0.3)

    def test_repeated_quotes_are_identical(self, engine):
        first = engine.price("24x36", "gloss", "poster", 4, True)
        second = engine.price("24x36", "gloss", "poster", 4, True)
        assert first == second


# Tests for rounding

class TestDiscountRounding:
    """Discount is rounded half-up to whole cents."""

    def test_half_cent_rounds_up(self):
        table = RateTable(
            rates={(ProductType.POSTER, PrintSize.SMALL): RateEntry(1850, "TEST-PHO-12X18")},
            discount_rate=Decimal("0.25"),
        )
        price = PricingEngine(table).price("12x18", "matte", "poster", discount_eligible=True)

        # 1850 * 0.25 = 462.5
        assert price.discount_amount == 463
        assert price.total == 1850 - 463


# Tests for configuration errors

class TestPricingErrors:
    """Unpriceable configurations raise instead of pricing at zero."""

    def test_unknown_size(self, engine):
        with pytest.raises(PricingError) as exc_info:
            engine.price("30x40", "matte", "poster")
        assert exc_info.value.size == "30x40"

    def test_unknown_product_type(self, engine):
        with pytest.raises(PricingError):
            engine.price("18x24", "matte", "mug")

    def test_unknown_poster_finish(self, engine):
        with pytest.raises(PricingError):
            engine.price("18x24", "satin", "poster")

    def test_unknown_canvas_finish_is_ignored(self, engine):
        price = engine.price("18x24", "satin", "canvas")
        assert price.sku == "GLOBAL-CAN-18X24"

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
    def test_invalid_quantity(self, engine, quantity):
        with pytest.raises(PricingError):
            engine.price("18x24", "matte", "poster", quantity=quantity)

    def test_missing_rate_table_entry(self):
        table = RateTable(rates={
            (ProductType.POSTER, PrintSize.MEDIUM): RateEntry(2400, "GLOBAL-PHO-18X24"),
        })
        engine = PricingEngine(table)

        with pytest.raises(PricingError) as exc_info:
            engine.price("18x24", None, "canvas")
        assert "no rate table entry" in str(exc_info.value)


# Tests for catalogue helpers

class TestQuoteAllSizes:
    def test_quotes_every_size_smallest_first(self, engine):
        quotes = engine.quote_all_sizes("poster", "gloss")

        assert list(quotes) == ["12x18", "18x24", "24x36"]
        assert all(isinstance(q, PriceBreakdown) for q in quotes.values())
        assert quotes["12x18"].subtotal == 1800 + 500

    def test_quotes_apply_discount(self, engine):
        quotes = engine.quote_all_sizes(ProductType.CANVAS, discount_eligible=True)
        assert all(q.has_discount for q in quotes.values())


class TestRateTable:
    def test_overrides_from_config_mapping(self):
        table = get_rate_table({
            "GLOSS_SURCHARGE_CENTS": 700,
            "DISCOUNT_RATE": "0.10",
            "SHIPPING_COST_CENTS": 995,
        })

        assert table.gloss_surcharge_cents == 700
        assert table.discount_rate == Decimal("0.10")
        assert table.shipping_cost_cents == 995

        price = PricingEngine(table).price("18x24", "gloss", "poster", discount_eligible=True)
        assert price.subtotal == 3100
        assert price.discount_amount == 310
        assert price.total == 3100 - 310 + 995

    def test_default_table_without_config(self):
        assert get_rate_table() == RateTable()

    def test_rejects_discount_rate_above_one(self):
        with pytest.raises(ValueError):
            RateTable(discount_rate=Decimal("1.5"))


class TestPriceBreakdown:
    def test_rejects_discount_larger_than_subtotal(self):
        with pytest.raises(ValueError):
            PriceBreakdown(subtotal=100, discount_amount=200, shipping_cost=0, sku="X")

    def test_dict_round_trip(self):
        price = PriceBreakdown(subtotal=2400, discount_amount=720, shipping_cost=0, sku="X")
        assert PriceBreakdown.from_dict(price.to_dict()) == price
