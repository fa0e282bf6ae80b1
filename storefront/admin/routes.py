# storefront/admin/routes.py
from flask import flash, jsonify, redirect, request, url_for

from ..errors import NotFound, ShopError, ValidationError
from ..extensions import db
from ..model import Invoice, MembershipPlan, Promo, User
from ..services import current_services
from ..services.promo_service import create_promo, delete_promo, update_promo
from ..utils.api import api_ok, pending_messages
from ..utils.decorators import admin_required
from . import bp

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def _payload():
    return request.form or (request.get_json(silent=True) or {})

def _get_or_404(model, ident, message="Not found."):
    obj = db.session.get(model, ident)
    if obj is None:
        raise NotFound(message)
    return obj

# ---- promo codes -----------------------------------------------------------

@bp.get("/promocodes")
@admin_required()
def promocodes():
    items = Promo.query.order_by(Promo.created_at.desc(), Promo.id.desc()).all()
    return ok("promocodes", {
        "items": [p.as_api() for p in items],
        "messages": pending_messages(),
    })

@bp.post("/promocodes")
@admin_required()
def promocode_create():
    try:
        p = create_promo(_payload())
    except ValidationError as e:
        for msg in e.errors:
            flash(msg, "error")
        return redirect(url_for("admin.promocodes"))
    flash(f"Promo {p.code} created", "success")
    return redirect(url_for("admin.promocodes"))

@bp.post("/promocodes/<int:promo_id>")
@admin_required()
def promocode_update(promo_id: int):
    p = _get_or_404(Promo, promo_id, "Promo not found.")
    try:
        update_promo(p, _payload())
    except ValidationError as e:
        db.session.rollback()
        for msg in e.errors:
            flash(msg, "error")
        return redirect(url_for("admin.promocodes"))
    flash(f"Promo {p.code} updated", "success")
    return redirect(url_for("admin.promocodes"))

@bp.post("/promocodes/<int:promo_id>/delete")
@admin_required()
def promocode_delete(promo_id: int):
    p = _get_or_404(Promo, promo_id, "Promo not found.")
    code = p.code
    delete_promo(p)
    flash(f"Promo {code} deleted", "info")
    return redirect(url_for("admin.promocodes"))

# ---- membership plans & member balances ------------------------------------

@bp.get("/membership-plans")
@admin_required()
def membership_plans():
    svc = current_services()
    plans = MembershipPlan.query.order_by(MembershipPlan.points_multiplier.asc()).all()
    members = User.query.order_by(User.id.asc()).all()
    enabled = svc.loyalty.enabled
    totals = svc.store.get_loyalty_totals() if enabled else {}
    data = []
    for u in members:
        row = u.as_dict(with_loyalty=enabled)
        if enabled:
            earned, redeemed = totals.get(u.id, (0, 0))
            row.update(
                tier=svc.loyalty.tier_for(u.loyalty_points),
                total_earned=earned,
                total_redeemed=redeemed,
            )
        data.append(row)
    return ok("membership plans", {
        "plans": [p.as_dict() for p in plans],
        "members": data,
        "loyalty_enabled": enabled,
        "messages": pending_messages(),
    })

@bp.post("/membership-plans/users/<int:user_id>/points")
@admin_required()
def set_member_points(user_id: int):
    svc = current_services()
    _get_or_404(User, user_id, "User not found.")
    try:
        data = _payload()
        svc.loyalty.set_balance(user_id, data.get("loyalty_points", data.get("points")))
    except NotFound:
        raise
    except ShopError as e:
        flash(e.message, "error")
        return redirect(url_for("admin.membership_plans"))
    flash("Loyalty points updated successfully.", "success")
    return redirect(url_for("admin.membership_plans"))

# ---- invoices --------------------------------------------------------------

@bp.get("/invoices")
@admin_required()
def invoices():
    items = Invoice.query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
    return ok("invoices", {
        "items": [i.as_api() for i in items],
        "messages": pending_messages(),
    })

@bp.get("/invoices/<int:invoice_id>")
@admin_required()
def invoice_detail(invoice_id: int):
    inv = _get_or_404(Invoice, invoice_id, "Invoice not found.")
    return ok("invoice", {
        "invoice": inv.as_api(),
        "order": inv.order.as_api() if inv.order else None,
    })
