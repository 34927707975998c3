# backend/services/pricing.py
"""Cart pricing.

Pure computations over plain data: nothing here touches the database or the
settings object. All amounts are integer minor currency units.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from utils.money import percent_of

TAX_POLICY_VARIANT = "variant"
TAX_POLICY_FLAT = "flat"
TAX_POLICIES = (TAX_POLICY_VARIANT, TAX_POLICY_FLAT)


@dataclass(frozen=True)
class CouponRule:
    discount: int
    minimum_subtotal: int


# Flat-amount coupons keyed by code
COUPONS: Dict[str, CouponRule] = {
    "SAVE10": CouponRule(discount=10000, minimum_subtotal=100000),
    "SAVE20": CouponRule(discount=20000, minimum_subtotal=200000),
}


@dataclass
class PricedLine:
    """One cart line resolved against live catalog data."""
    quantity: int
    price: Optional[int]
    sale_price: Optional[int] = None
    tax_rate: Optional[Decimal] = None
    available: bool = True


@dataclass
class LineAmounts:
    unit_price: int = 0
    subtotal: int = 0
    tax: int = 0
    savings: int = 0


@dataclass
class ShippingPolicy:
    flat_fee: int
    free_threshold: int

    def fee(self, subtotal: int) -> int:
        if subtotal <= 0 or subtotal >= self.free_threshold:
            return 0
        return self.flat_fee


@dataclass
class TaxComponent:
    name: str
    amount: int


@dataclass
class CartSummary:
    subtotal: int = 0
    tax: int = 0
    discount: int = 0
    shipping: int = 0
    grand_total: int = 0
    savings: int = 0
    can_checkout: bool = True
    tax_breakdown: List[TaxComponent] = field(default_factory=list)
    lines: List[LineAmounts] = field(default_factory=list)


def effective_sale_price(price: Optional[int], sale_price: Optional[int]) -> Optional[int]:
    # A sale price only counts when it is strictly below the base price
    if price is None or sale_price is None or sale_price >= price:
        return None
    return sale_price


def unit_price(price: int, sale_price: Optional[int]) -> int:
    sale = effective_sale_price(price, sale_price)
    return sale if sale is not None else price


def price_line(line: PricedLine) -> LineAmounts:
    if not line.available or line.price is None:
        return LineAmounts()

    unit = unit_price(line.price, line.sale_price)
    subtotal = unit * line.quantity
    sale = effective_sale_price(line.price, line.sale_price)
    return LineAmounts(
        unit_price=unit,
        subtotal=subtotal,
        tax=percent_of(subtotal, line.tax_rate),
        savings=(line.price - sale) * line.quantity if sale is not None else 0,
    )


def apply_coupon(code: Optional[str], subtotal: int) -> int:
    """Flat discount for a known code whose minimum subtotal is met, else 0."""
    if not code:
        return 0
    rule = COUPONS.get(code.strip().upper())
    if rule is None or subtotal < rule.minimum_subtotal:
        return 0
    return rule.discount


def split_tax(tax: int, domestic: bool) -> List[TaxComponent]:
    if not domestic:
        return [TaxComponent("IGST", tax)]
    central = tax // 2
    # Odd minor unit goes to the state component so the parts sum exactly
    return [TaxComponent("CGST", central), TaxComponent("SGST", tax - central)]


def compute_cart_summary(
    lines: List[PricedLine],
    *,
    shipping: ShippingPolicy,
    tax_policy: str = TAX_POLICY_VARIANT,
    flat_tax_rate=18,
    coupon_code: Optional[str] = None,
    domestic: bool = True,
) -> CartSummary:
    if tax_policy not in TAX_POLICIES:
        raise ValueError(f"Unknown tax policy: {tax_policy}")

    summary = CartSummary()
    for line in lines:
        amounts = price_line(line)
        summary.lines.append(amounts)
        if not line.available:
            summary.can_checkout = False
            continue
        summary.subtotal += amounts.subtotal
        summary.tax += amounts.tax
        summary.savings += amounts.savings

    if tax_policy == TAX_POLICY_FLAT:
        summary.tax = percent_of(summary.subtotal, flat_tax_rate)

    summary.shipping = shipping.fee(summary.subtotal)
    summary.discount = apply_coupon(coupon_code, summary.subtotal)
    summary.grand_total = max(summary.subtotal + summary.tax + summary.shipping - summary.discount, 0)
    summary.tax_breakdown = split_tax(summary.tax, domestic)
    return summary
