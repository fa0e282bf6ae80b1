# --- storefront/model/promo.py ---

from ..extensions import db
from sqlalchemy.sql import func

class Promo(db.Model):
    __tablename__ = "promocodes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255))

    # "percent" or "fixed"
    kind = db.Column("type", db.String(16), nullable=False, default="percent")
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Optional constraints
    min_total = db.Column(db.Numeric(10, 2), nullable=True)     # require cart subtotal >= this
    starts_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    max_uses = db.Column(db.Integer, nullable=True)             # global usage cap
    uses = db.Column(db.Integer, nullable=False, default=0)
    per_user_limit = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())

    redemptions = db.relationship(
        "PromoRedemption",
        backref="promo",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "type": self.kind,
            "amount": str(self.amount) if self.amount is not None else None,
            "active": self.active,
            "min_total": str(self.min_total) if self.min_total is not None else None,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "max_uses": self.max_uses,
            "uses": self.uses,
            "per_user_limit": self.per_user_limit,
        }

class PromoRedemption(db.Model):
    __tablename__ = "promocode_redemptions"
    __table_args__ = (
        db.UniqueConstraint("promo_id", "user_id", name="uq_promo_redemption_promo_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    promo_id = db.Column(db.Integer, db.ForeignKey("promocodes.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    uses = db.Column(db.Integer, nullable=False, default=0)
    last_used = db.Column(db.DateTime, server_default=func.now())
