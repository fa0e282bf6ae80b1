# storefront/wishlist/routes.py
from flask import flash, jsonify, redirect, url_for

from ..errors import NotFound
from ..services import current_services
from ..utils.api import api_ok, pending_messages
from ..utils.money import to_string_money
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

@bp.get("")
def view():
    svc = current_services()
    return ok("wishlist", {"items": svc.shop.wishlist, "messages": pending_messages()})

@bp.post("/add/<int:product_id>")
def add(product_id: int):
    svc = current_services()
    info = svc.store.get_product_stock(product_id)
    if info is None:
        raise NotFound("Product not found.")
    items = svc.shop.wishlist
    if any(i["product_id"] == product_id for i in items):
        flash(f'"{info.name}" is already in your wishlist.', "info")
    else:
        items.append({
            "product_id": info.product_id,
            "product_name": info.name,
            "unit_price": to_string_money(info.price),
            "image_ref": info.image,
        })
        svc.shop.wishlist = items
        flash(f'Added "{info.name}" to your wishlist.', "success")
    return redirect(url_for("wishlist.view"))

@bp.post("/remove/<int:product_id>")
def remove(product_id: int):
    svc = current_services()
    items = svc.shop.wishlist
    kept = [i for i in items if i["product_id"] != product_id]
    if len(kept) != len(items):
        svc.shop.wishlist = kept
        flash("Removed from wishlist.", "info")
    return redirect(url_for("wishlist.view"))
