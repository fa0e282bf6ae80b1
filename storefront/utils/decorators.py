# ------- storefront/utils/decorators.py -------
from functools import wraps
from flask import current_app, g, jsonify, session

from ..extensions import db
from ..utils.api import api_error
from ..model.user import User

def _current_user():
    uid = session.get("user_id")
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    return db.session.get(User, uid) if uid else None

def is_admin(u: User) -> bool:
    if not u:
        return False
    primary = (current_app.config.get("PRIMARY_ADMIN_EMAIL") or "").lower()
    return u.role == "admin" or (bool(primary) and (u.email or "").lower() == primary)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        u = _current_user()
        if not u:
            return jsonify(api_error("Unauthorized")), 401
        g.user = u
        return fn(*args, **kwargs)
    return wrapper

def admin_required(message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if not u:
                return jsonify(api_error("Unauthorized")), 401
            if not is_admin(u):
                return jsonify(api_error(message or "Forbidden")), 403
            g.user = u
            return fn(*args, **kwargs)
        return wrapper
    return decorator
