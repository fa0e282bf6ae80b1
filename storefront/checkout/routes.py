# storefront/checkout/routes.py
from flask import current_app, flash, g, jsonify, redirect, request, url_for

from ..errors import EmptyCart, ShopError, ValidationError
from ..services import current_services
from ..services.promo_service import active_promos
from ..utils.api import api_ok, pending_messages
from ..utils.decorators import login_required
from ..utils.money import fmt_dollars
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def _to_checkout():
    return redirect(url_for("checkout.view"))

def _fail(e: ShopError):
    flash(e.message, "error")
    if isinstance(e, EmptyCart):
        return redirect(url_for("cart.view"))
    return _to_checkout()

# ---- checkout page ---------------------------------------------------------

@bp.get("/checkout")
@login_required
def view():
    svc = current_services()
    if not svc.shop.cart_lines:
        flash(EmptyCart.message, "error")
        return redirect(url_for("cart.view"))

    breakdown, dropped = svc.checkout.review(svc.shop, g.user.id)
    if dropped:
        flash(dropped, "error")

    applied = svc.shop.applied_promo
    preview = svc.shop.preview_promo
    pending = svc.shop.loyalty_redemption
    balance = svc.loyalty.balance(g.user.id) if svc.loyalty.enabled else None
    cfg = current_app.config

    return ok("checkout", {
        "items": [l.as_api() for l in svc.shop.cart_lines],
        "breakdown": breakdown.as_api(),
        "applied_promo": applied.as_api() if applied else None,
        "preview_promo": preview.as_api() if preview else None,
        "loyalty": {
            "enabled": svc.loyalty.enabled,
            "balance": balance,
            "tier": svc.loyalty.tier_for(balance) if balance is not None else None,
            "pending_redemption": pending.as_api() if pending else None,
            "history": [t.as_api() for t in svc.loyalty.history(g.user.id, limit=10)],
            "point_value": str(cfg["LOYALTY_POINT_VALUE"]),
            "redemption_step": cfg["LOYALTY_REDEMPTION_STEP"],
        },
        "active_promos": [p.as_api() for p in active_promos()],
        "time_slots": list(cfg["DELIVERY_TIME_SLOTS"]),
        "payment_methods": list(cfg["PAYMENT_METHODS"]),
        "delivery_draft": svc.shop.delivery_draft,
        "messages": pending_messages(),
    })

@bp.post("/checkout")
@login_required
def submit():
    svc = current_services()
    try:
        result = svc.checkout.checkout(svc.shop, g.user.id, request.form)
    except ValidationError as e:
        for msg in e.errors:
            flash(msg, "error")
        return _to_checkout()
    except ShopError as e:
        return _fail(e)

    if result.points_earned is None:
        flash("Order placed successfully!", "success")
    else:
        flash(f"Order placed successfully! You earned {result.points_earned} points.", "success")
    return redirect(url_for("order.invoice", order_id=result.order_id))

# ---- promo -----------------------------------------------------------------

def _code_from_form():
    return request.form.get("code") or request.form.get("promoCode") or ""

@bp.post("/apply-promo")
@login_required
def apply_promo():
    svc = current_services()
    try:
        locked = svc.promos.apply(svc.shop, g.user.id, _code_from_form())
    except ShopError as e:
        return _fail(e)
    flash(f"Promo applied: {locked.code} (-{fmt_dollars(locked.discount)})", "success")
    return _to_checkout()

@bp.post("/preview-promo")
@login_required
def preview_promo():
    svc = current_services()
    try:
        locked = svc.promos.preview(svc.shop, g.user.id, _code_from_form())
    except ShopError as e:
        return _fail(e)
    flash(f"Promo preview: {locked.code} (-{fmt_dollars(locked.discount)})", "info")
    return _to_checkout()

@bp.post("/confirm-promo")
@login_required
def confirm_promo():
    svc = current_services()
    try:
        locked = svc.promos.confirm(svc.shop, g.user.id)
    except ShopError as e:
        return _fail(e)
    flash(f"Promo applied: {locked.code} (-{fmt_dollars(locked.discount)})", "success")
    return _to_checkout()

@bp.post("/cancel-promo")
@login_required
def cancel_promo():
    svc = current_services()
    if svc.promos.cancel_preview(svc.shop) is not None:
        flash("Promo preview cancelled", "info")
    return _to_checkout()

@bp.post("/remove-applied-promo")
@login_required
def remove_applied_promo():
    svc = current_services()
    removed = svc.promos.remove_applied(svc.shop)
    if removed is not None:
        flash(f"Removed applied promo {removed.code}", "info")
    return _to_checkout()

# ---- loyalty ---------------------------------------------------------------

@bp.post("/apply-loyalty")
@login_required
def apply_loyalty():
    svc = current_services()
    points = request.form.get("points") or request.form.get("pointsToRedeem")
    try:
        pending = svc.loyalty.redeem(svc.shop, g.user.id, points)
    except ShopError as e:
        return _fail(e)
    flash(f"Redeeming {pending.points} points for {fmt_dollars(pending.discount)} off.", "success")
    return _to_checkout()

@bp.post("/cancel-loyalty")
@login_required
def cancel_loyalty():
    svc = current_services()
    try:
        restored = svc.loyalty.cancel_redemption(svc.shop, g.user.id)
    except ShopError as e:
        return _fail(e)
    if restored is not None:
        flash("Loyalty redemption cancelled and points restored.", "info")
    return _to_checkout()
