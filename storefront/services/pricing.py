# storefront/services/pricing.py
"""
Pure price arithmetic for the checkout page and the commit step.

Lines are anything with ``unit_price`` and ``quantity`` attributes
(``CartLine`` in practice). No database or session access here.
"""
from dataclasses import dataclass

from ..utils.money import D, ZERO, Money, floor_int, round_money, to_string_money

PROMO_KINDS = ("percent", "fixed")


def line_total(line) -> Money:
    return round_money(D(line.unit_price) * int(line.quantity))


def cart_subtotal(lines) -> Money:
    total = ZERO
    for line in lines:
        total += line_total(line)
    return round_money(total)


def promo_discount_amount(kind: str, amount, subtotal) -> Money:
    """Percent or fixed discount, clamped to ``[0, subtotal]``."""
    subtotal = round_money(subtotal)
    if subtotal <= 0:
        return ZERO
    amount = D(amount)
    if kind == "percent":
        disc = round_money(subtotal * amount / D(100))
    else:
        disc = round_money(amount)
    return max(ZERO, min(disc, subtotal))


def points_to_dollars(points: int, point_value) -> Money:
    return round_money(D(int(points)) * D(point_value))


def earned_points(final_total) -> int:
    return max(0, floor_int(final_total))


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Money
    promo_discount: Money
    loyalty_discount: Money
    final_total: Money
    earned_points: int

    def as_api(self):
        return {
            "subtotal": to_string_money(self.subtotal),
            "promo_discount": to_string_money(self.promo_discount),
            "loyalty_discount": to_string_money(self.loyalty_discount),
            "final_total": to_string_money(self.final_total),
            "earned_points": self.earned_points,
        }


def compute_breakdown(lines, promo_discount=ZERO, loyalty_discount=ZERO) -> PriceBreakdown:
    subtotal = cart_subtotal(lines)
    promo_discount = round_money(promo_discount or ZERO)
    loyalty_discount = round_money(loyalty_discount or ZERO)
    final_total = max(ZERO, round_money(subtotal - promo_discount - loyalty_discount))
    return PriceBreakdown(
        subtotal=subtotal,
        promo_discount=promo_discount,
        loyalty_discount=loyalty_discount,
        final_total=final_total,
        earned_points=earned_points(final_total),
    )
