import os


def _flag(name, default="1"):
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

    # Admin surface is reserved to role=admin or this address
    PRIMARY_ADMIN_EMAIL = os.getenv("PRIMARY_ADMIN_EMAIL", "admin@example.com").strip().lower()

    # Loyalty
    LOYALTY_ENABLED = _flag("LOYALTY_ENABLED")
    LOYALTY_POINT_VALUE = "0.05"          # dollars per point (100 points = $5)
    LOYALTY_REDEMPTION_STEP = 100
    LOYALTY_TIERS = (("Gold", 600), ("Silver", 200), ("Basic", 0))

    # Checkout
    INVOICE_NUMBER_BASE = 108000
    DELIVERY_TIME_SLOTS = ("09:00-12:00", "12:00-15:00", "15:00-18:00", "18:00-21:00")
    PAYMENT_METHODS = ("cash_on_delivery", "card", "paynow")

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'storefront.db')}"
        else:
            url = os.getenv("DATABASE_URL")
            # some hosts still hand out the legacy scheme
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            app.config["SQLALCHEMY_DATABASE_URI"] = url


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOYALTY_ENABLED = True
    PRIMARY_ADMIN_EMAIL = "admin@example.com"
