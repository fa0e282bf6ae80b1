# storefront/model/loyalty.py
from datetime import datetime
from ..extensions import db

LOYALTY_KINDS = ("earn", "redeem", "restore", "adjust")

class LoyaltyTransaction(db.Model):
    """One signed movement of a member's points balance."""
    __tablename__ = "loyalty_transactions"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    points = db.Column(db.Integer, nullable=False)  # negative for redeem / downward adjust
    kind = db.Column(db.String(16), nullable=False)  # earn | redeem | restore | adjust
    description = db.Column(db.String(255), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def as_api(self):
        return {
            "id": self.id,
            "points": self.points,
            "kind": self.kind,
            "description": self.description,
            "order_id": self.order_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
