# storefront/order/routes.py
from flask import g, jsonify

from ..errors import NotFound
from ..extensions import db
from ..model import Order
from ..utils.api import api_ok, pending_messages
from ..utils.decorators import login_required
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

@bp.get("/orders")
@login_required
def history():
    q = (Order.query
         .filter(Order.user_id == g.user.id)
         .order_by(Order.created_at.desc(), Order.id.desc()))
    return ok("orders", {
        "items": [o.as_api() for o in q.all()],
        "messages": pending_messages(),
    })

@bp.get("/invoice/<int:order_id>")
@login_required
def invoice(order_id: int):
    o = db.session.get(Order, order_id)
    # someone else's order looks exactly like a missing one
    if not o or o.user_id != g.user.id:
        raise NotFound("Order not found.")
    return ok("invoice", {
        "order": o.as_api(),
        "invoice": o.invoice.as_api() if o.invoice else None,
        "messages": pending_messages(),
    })
