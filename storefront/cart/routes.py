# storefront/cart/routes.py
from flask import flash, jsonify, redirect, request, url_for

from ..errors import NotFound, ShopError
from ..services import current_services
from ..utils.api import api_ok, pending_messages
from ..utils.money import to_string_money
from . import bp

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def _back():
    return redirect(url_for("cart.view"))

# ---- routes ----------------------------------------------------------------

@bp.get("")
def view():
    svc = current_services()
    lines = svc.cart.list()
    return ok("cart", {
        "items": [l.as_api() for l in lines],
        "count": sum(l.quantity for l in lines),
        "subtotal": to_string_money(svc.cart.subtotal()),
        "messages": pending_messages(),
    })

@bp.post("/add/<int:product_id>")
def add(product_id: int):
    svc = current_services()
    try:
        change = svc.cart.add(product_id, request.form.get("quantity", 1))
    except NotFound:
        raise
    except ShopError as e:
        flash(e.message, "error")
        return _back()
    if change.adjusted:
        flash(change.message, "warning")
    else:
        flash(f'Added "{change.line.product_name}" to your cart.', "success")
    return _back()

@bp.post("/update/<int:product_id>")
def update(product_id: int):
    svc = current_services()
    try:
        change = svc.cart.set_quantity(product_id, request.form.get("quantity", 0))
    except NotFound:
        raise
    except ShopError as e:
        flash(e.message, "error")
        return _back()
    if change.line is None:
        flash("Item removed from cart.", "info")
    else:
        flash("Cart updated.", "success")
    return _back()

@bp.post("/remove/<int:product_id>")
def remove(product_id: int):
    current_services().cart.remove(product_id)
    flash("Item removed from cart.", "info")
    return _back()
