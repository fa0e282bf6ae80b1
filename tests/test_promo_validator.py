from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.errors import EmptyCart, PromoInvalid
from storefront.services.cart_service import CartLine
from storefront.services.promo_service import (
    EXPIRED,
    MAX_USES,
    NOT_FOUND,
    NOT_STARTED,
    PER_USER,
    LockedPromo,
    PromoValidator,
    evaluate,
    still_redeemable,
)
from storefront.services.session_state import ShopSession

NOW = datetime(2025, 6, 1, 12, 0, 0)


def make_promo(**kw):
    base = dict(
        id=1, code="TAKE5", kind="fixed", amount=Decimal("5"), active=True,
        starts_at=None, expires_at=None, min_total=None, max_uses=None, uses=0,
        per_user_limit=None,
    )
    base.update(kw)
    return SimpleNamespace(**base)


class FakeStore:
    def __init__(self, *promos, redemptions=None):
        self.promos = {p.id: p for p in promos}
        self.redemptions = redemptions or {}

    def get_promo(self, promo_id=None, code=None):
        if promo_id is not None:
            return self.promos.get(promo_id)
        return next((p for p in self.promos.values() if p.code.upper() == (code or "").upper()), None)

    def get_user_promo_redemption_count(self, promo_id, user_id):
        return self.redemptions.get((promo_id, user_id), 0)


def shop_with(*lines):
    shop = ShopSession({})
    shop.cart_lines = [
        CartLine(product_id=pid, product_name=f"p{pid}", unit_price=Decimal(price), quantity=qty)
        for pid, price, qty in lines
    ]
    return shop


# ---- evaluate --------------------------------------------------------------

def test_missing_or_inactive_promo():
    assert evaluate(None, Decimal("10"), now=NOW).reason == NOT_FOUND
    assert evaluate(make_promo(active=False), Decimal("10"), now=NOW).reason == NOT_FOUND


def test_window_checks():
    later = make_promo(starts_at=NOW + timedelta(days=1))
    assert evaluate(later, Decimal("50"), now=NOW).reason == NOT_STARTED
    gone = make_promo(expires_at=NOW - timedelta(seconds=1))
    assert evaluate(gone, Decimal("50"), now=NOW).reason == EXPIRED


def test_minimum_spend_reason_names_amount():
    d = evaluate(make_promo(min_total=Decimal("20")), Decimal("19.99"), now=NOW)
    assert not d.ok
    assert d.reason == "Promo requires minimum spend of $20.00"


def test_usage_caps():
    assert evaluate(make_promo(max_uses=2, uses=2), Decimal("50"), now=NOW).reason == MAX_USES
    d = evaluate(make_promo(per_user_limit=1), Decimal("50"), user_id=7,
                 redemption_lookup=lambda pid, uid: 1, now=NOW)
    assert d.reason == PER_USER


def test_per_user_limit_ignored_without_user():
    d = evaluate(make_promo(per_user_limit=1), Decimal("50"), user_id=None,
                 redemption_lookup=lambda pid, uid: 5, now=NOW)
    assert d.ok


def test_first_failing_rule_wins():
    both = make_promo(active=False, expires_at=NOW - timedelta(days=1))
    assert evaluate(both, Decimal("50"), now=NOW).reason == NOT_FOUND
    expired_and_small = make_promo(expires_at=NOW - timedelta(days=1), min_total=Decimal("100"))
    assert evaluate(expired_and_small, Decimal("50"), now=NOW).reason == EXPIRED
    small_and_capped = make_promo(min_total=Decimal("100"), max_uses=1, uses=1)
    assert evaluate(small_and_capped, Decimal("50"), now=NOW).reason.startswith("Promo requires minimum spend")


def test_passing_promo_returns_clamped_discount():
    d = evaluate(make_promo(kind="fixed", amount=Decimal("5")), Decimal("3.00"), now=NOW)
    assert d.ok
    assert d.discount == Decimal("3.00")


def test_commit_recheck_skips_minimum_spend():
    p = make_promo(min_total=Decimal("100"))
    assert still_redeemable(p, now=NOW) is None
    assert still_redeemable(make_promo(max_uses=1, uses=1), now=NOW) == MAX_USES


# ---- validator -------------------------------------------------------------

def test_apply_binds_locked_discount():
    v = PromoValidator(FakeStore(make_promo()), clock=lambda: NOW)
    shop = shop_with((4, "1.80", 20))
    shop.preview_promo = LockedPromo(1, "TAKE5", Decimal("5"))
    locked = v.apply(shop, 7, "  take5 ")
    assert locked.code == "TAKE5"
    assert locked.discount == Decimal("5.00")
    assert shop.applied_promo == locked
    assert shop.preview_promo is None


def test_apply_rejected_when_user_already_redeemed():
    store = FakeStore(make_promo(per_user_limit=1), redemptions={(1, 7): 1})
    v = PromoValidator(store, clock=lambda: NOW)
    shop = shop_with((4, "1.80", 20))
    with pytest.raises(PromoInvalid) as exc:
        v.apply(shop, 7, "TAKE5")
    assert exc.value.message == PER_USER
    assert shop.applied_promo is None
    assert shop.preview_promo is None


def test_blank_code_and_empty_cart():
    v = PromoValidator(FakeStore(make_promo()), clock=lambda: NOW)
    with pytest.raises(PromoInvalid) as exc:
        v.apply(shop_with((4, "1.80", 1)), 7, "   ")
    assert exc.value.message == "Please provide a promo code"
    with pytest.raises(EmptyCart):
        v.apply(ShopSession({}), 7, "TAKE5")


def test_preview_does_not_touch_applied_slot():
    pct = make_promo(id=2, code="WELCOME10", kind="percent", amount=Decimal("10"))
    v = PromoValidator(FakeStore(make_promo(), pct), clock=lambda: NOW)
    shop = shop_with((4, "1.80", 20))
    applied = v.apply(shop, 7, "TAKE5")
    preview = v.preview(shop, 7, "WELCOME10")
    assert preview.discount == Decimal("3.60")
    assert shop.applied_promo == applied
    assert shop.preview_promo == preview


def test_confirm_recomputes_against_current_cart():
    pct = make_promo(id=2, code="WELCOME10", kind="percent", amount=Decimal("10"))
    v = PromoValidator(FakeStore(pct), clock=lambda: NOW)
    shop = shop_with((4, "1.80", 10))
    assert v.preview(shop, 7, "WELCOME10").discount == Decimal("1.80")
    shop.cart_lines = shop.cart_lines + [
        CartLine(product_id=6, product_name="Broccoli", unit_price=Decimal("5.00"), quantity=2)
    ]
    locked = v.confirm(shop, 7)
    assert locked.discount == Decimal("2.80")
    assert shop.applied_promo == locked
    assert shop.preview_promo is None


def test_confirm_failure_clears_preview_only():
    store = FakeStore(make_promo(min_total=Decimal("20")))
    v = PromoValidator(store, clock=lambda: NOW)
    shop = shop_with((4, "1.80", 20))
    v.preview(shop, 7, "TAKE5")
    shop.cart_lines = [CartLine(product_id=4, product_name="Bread", unit_price=Decimal("1.80"), quantity=2)]
    with pytest.raises(PromoInvalid):
        v.confirm(shop, 7)
    assert shop.preview_promo is None
    assert shop.applied_promo is None


def test_confirm_without_preview():
    v = PromoValidator(FakeStore(), clock=lambda: NOW)
    with pytest.raises(PromoInvalid):
        v.confirm(shop_with((4, "1.80", 1)), 7)


def test_revalidate_drops_promo_once_cart_falls_below_minimum():
    v = PromoValidator(FakeStore(make_promo(min_total=Decimal("20"))), clock=lambda: NOW)
    shop = shop_with((4, "1.80", 20))
    v.apply(shop, 7, "TAKE5")

    locked, reason = v.revalidate_applied(shop, 7)
    assert reason is None
    assert locked.discount == Decimal("5.00")

    shop.cart_lines = [CartLine(product_id=4, product_name="Bread", unit_price=Decimal("1.80"), quantity=5)]
    locked, reason = v.revalidate_applied(shop, 7)
    assert locked is None
    assert reason == "Promo requires minimum spend of $20.00"
    assert shop.applied_promo is None


def test_revalidate_keeps_locked_discount():
    pct = make_promo(kind="percent", amount=Decimal("10"))
    v = PromoValidator(FakeStore(pct), clock=lambda: NOW)
    shop = shop_with((4, "1.80", 10))
    v.apply(shop, 7, "TAKE5")
    shop.cart_lines = shop.cart_lines + [
        CartLine(product_id=6, product_name="Broccoli", unit_price=Decimal("5.00"), quantity=10)
    ]
    locked, _ = v.revalidate_applied(shop, 7)
    assert locked.discount == Decimal("1.80")


def test_cancel_and_remove_are_noops_when_empty():
    v = PromoValidator(FakeStore(), clock=lambda: NOW)
    shop = ShopSession({})
    assert v.cancel_preview(shop) is None
    assert v.remove_applied(shop) is None
