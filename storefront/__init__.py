# --- storefront/__init__.py ---
import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import NotFound
from .extensions import cors, db, migrate
from .utils.api import api_error

logger = logging.getLogger(__name__)

def create_app(config_object=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    config_object.init_app(app)
    app.json.sort_keys = False

    logging.basicConfig(
        level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    # Register blueprints
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .wishlist import bp as wishlist_bp; app.register_blueprint(wishlist_bp)
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .admin import bp as admin_bp; app.register_blueprint(admin_bp)

    from .cli import register_cli
    register_cli(app)

    register_error_handlers(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="storefront running")

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    return app

def register_error_handlers(app):
    @app.errorhandler(NotFound)
    def shop_not_found(e):
        return jsonify(api_error(e.message)), 404

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify(api_error(e.description or e.name)), e.code

    @app.errorhandler(Exception)
    def unexpected(e):
        db.session.rollback()
        logger.exception("unhandled error: %s", e)
        return jsonify(api_error("Internal server error")), 500
