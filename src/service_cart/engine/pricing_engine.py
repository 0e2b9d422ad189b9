"""
Pricing Engine - Cart-level subtotal, coupon discount, tax and total.

Prices the cart against the active catalog, independent of which provider
is eventually chosen:

    subtotal = sum(package price x quantity)   (unquoted packages count as 0)
    discount = min(coupon amount, subtotal)    (0 without a coupon)
    tax      = round(subtotal x tax rate)      (half-up)
    total    = subtotal - discount + tax
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from .models import CartItem, CartTotals, Coupon, ServicePackage


def round_half_up(value) -> int:
    """Round to the nearest whole unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class PricingEngine:
    """
    Computes cart totals.

    Args:
        tax_rate: Flat tax rate applied to the subtotal
        coupons: Known coupons, looked up by code
    """

    def __init__(self, tax_rate: float = 0.05, coupons: Iterable[Coupon] = ()):
        self.tax_rate = tax_rate
        self.coupons = {c.code: c for c in coupons}

    def find_coupon(self, code: Optional[str]) -> Optional[Coupon]:
        if not code:
            return None
        return self.coupons.get(code)

    def subtotal(self, items: Iterable[CartItem], catalog: Iterable[ServicePackage]) -> float:
        packages = {p.id: p for p in catalog}
        subtotal = 0.0
        for item in items:
            package = packages.get(item.service_id)
            if package is not None:
                subtotal += package.unit_price * item.quantity
        return subtotal

    def discount(self, subtotal: float, coupon_code: Optional[str]) -> float:
        """Coupon amount capped at the subtotal. Unknown codes give no discount."""
        coupon = self.find_coupon(coupon_code)
        if coupon is None:
            return 0.0
        return max(0.0, min(float(coupon.amount_off), subtotal))

    def tax(self, subtotal: float) -> float:
        return float(round_half_up(Decimal(str(subtotal)) * Decimal(str(self.tax_rate))))

    def calculate(
        self,
        items: Iterable[CartItem],
        catalog: Iterable[ServicePackage],
        coupon_code: Optional[str] = None,
    ) -> CartTotals:
        subtotal = self.subtotal(items, catalog)
        discount = self.discount(subtotal, coupon_code)
        tax = self.tax(subtotal)
        return CartTotals(
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=subtotal - discount + tax,
        )
