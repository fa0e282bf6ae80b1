from flask import Blueprint

bp = Blueprint("wishlist", __name__, url_prefix="/wishlist")

from . import routes  # noqa: E402,F401
