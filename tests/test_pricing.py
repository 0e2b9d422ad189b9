"""
Tests for cart totals: subtotal, coupon discount, tax and total.
"""
import pytest

from service_cart.config.settings import DEFAULT_COUPONS, DEFAULT_PACKAGES
from service_cart.engine.models import CartItem, Coupon, ServicePackage
from service_cart.engine.pricing_engine import PricingEngine, round_half_up


@pytest.fixture
def engine():
    return PricingEngine(tax_rate=0.05, coupons=DEFAULT_COUPONS)


def test_default_package_with_flat_coupon(engine):
    totals = engine.calculate([CartItem("pkg-comprehensive", 1)], DEFAULT_PACKAGES, "SAVE200")

    assert totals.subtotal == 6099
    assert totals.discount == 200
    assert totals.tax == 305
    assert totals.total == 6204


def test_tax_rounds_half_up(engine):
    totals = engine.calculate([CartItem("pkg-standard", 1)], DEFAULT_PACKAGES)
    # 2599 x 0.05 = 129.95
    assert totals.tax == 130
    assert totals.total == 2729


@pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.4999, 2), (304.95, 305)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_discount_capped_at_subtotal():
    engine = PricingEngine(coupons=[Coupon("BIG", "Big", 1000)])
    catalog = [ServicePackage("pkg-a", "A", 300)]

    totals = engine.calculate([CartItem("pkg-a", 1)], catalog, "BIG")

    assert totals.discount == 300
    assert totals.subtotal - totals.discount == 0
    assert totals.total == totals.tax == 15


def test_unknown_coupon_gives_no_discount(engine):
    totals = engine.calculate([CartItem("pkg-standard", 1)], DEFAULT_PACKAGES, "NOPE")
    assert totals.discount == 0


def test_quantity_multiplies_price(engine):
    totals = engine.calculate([CartItem("pkg-standard", 2)], DEFAULT_PACKAGES)
    assert totals.subtotal == 5198


def test_custom_and_missing_packages_count_as_zero(engine):
    items = [CartItem("pkg-care-plus", 1), CartItem("pkg-removed", 3)]
    totals = engine.calculate(items, DEFAULT_PACKAGES, "SAVE200")

    assert totals.subtotal == 0
    assert totals.discount == 0
    assert totals.total == 0


def test_empty_cart_totals_zero(engine):
    totals = engine.calculate([], DEFAULT_PACKAGES, "SAVE10")
    assert (totals.subtotal, totals.discount, totals.tax, totals.total) == (0, 0, 0, 0)


def test_total_never_below_tax(engine):
    for code in (None, "SAVE200", "SAVE10"):
        totals = engine.calculate([CartItem("pkg-standard", 1)], DEFAULT_PACKAGES, code)
        assert totals.total >= totals.tax
