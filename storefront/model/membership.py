# --- storefront/model/membership.py ---
from ..extensions import db

# Display-only: multipliers are shown to members, not applied at checkout.
class MembershipPlan(db.Model):
    __tablename__ = "membership_plans"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    points_multiplier = db.Column(db.Numeric(4, 2), nullable=False, default=1)
    monthly_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    benefits = db.Column(db.Text)

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "points_multiplier": str(self.points_multiplier),
            "monthly_fee": str(self.monthly_fee),
            "benefits": self.benefits,
            }
