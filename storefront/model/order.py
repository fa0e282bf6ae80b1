from datetime import datetime
from ..extensions import db

class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)

    # Delivery snapshot
    customer_name = db.Column(db.String(120), nullable=False)
    customer_contact = db.Column(db.String(32), nullable=False)
    delivery_address = db.Column(db.String(255), nullable=False)
    postal_code = db.Column(db.String(16), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    delivery_date = db.Column(db.Date, nullable=False)
    delivery_time = db.Column(db.String(32), nullable=False)
    order_notes = db.Column(db.Text)

    # Money snapshot
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    promo_code = db.Column(db.String(64))
    promo_discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    loyalty_points_redeemed = db.Column(db.Integer, nullable=False, default=0)
    loyalty_discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    final_total = db.Column(db.Numeric(10, 2), nullable=False)
    points_earned = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id.asc()",
        lazy="selectin"
    )
    invoice = db.relationship("Invoice", backref="order", uselist=False, lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "invoice_number": self.invoice.invoice_number if self.invoice else None,
            "delivery": {
                "customer_name": self.customer_name,
                "customer_contact": self.customer_contact,
                "delivery_address": self.delivery_address,
                "postal_code": self.postal_code,
                "payment_method": self.payment_method,
                "delivery_date": self.delivery_date.isoformat() if self.delivery_date else None,
                "delivery_time": self.delivery_time,
                "order_notes": self.order_notes,
            },
            "money": {
                "subtotal": str(self.subtotal),
                "promo_code": self.promo_code,
                "promo_discount": str(self.promo_discount),
                "loyalty_points_redeemed": self.loyalty_points_redeemed,
                "loyalty_discount": str(self.loyalty_discount),
                "final_total": str(self.final_total),
                "points_earned": self.points_earned,
            },
            "items": [i.as_api() for i in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # Link back for audit (product may be edited or removed later)
    product_id = db.Column(db.Integer, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(10, 2), nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "line_total": str(self.line_total),
        }
