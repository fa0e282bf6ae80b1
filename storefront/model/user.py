# --- storefront/model/user.py ---

from sqlalchemy.orm import deferred

from ..extensions import db

class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("loyalty_points >= 0", name="ck_users_loyalty_points_nonneg"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name=db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role= db.Column(db.String(50), nullable=False, default="user", index=True) # roles: user, admin

    # Loyalty account (single canonical balance). Deferred so older schemas
    # without these columns can still load users.
    loyalty_points = deferred(db.Column(db.Integer, nullable=False, default=0))
    membership_tier = deferred(db.Column(db.String(32), nullable=False, default="Basic"))

    def as_dict(self, with_loyalty=False):
        data = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            }
        if with_loyalty:
            data["loyalty_points"] = self.loyalty_points
            data["membership_tier"] = self.membership_tier
        return data
