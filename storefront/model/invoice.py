# storefront/model/invoice.py
from datetime import datetime
from ..extensions import db

class Invoice(db.Model):
    __tablename__ = "invoices"
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)
    invoice_number = db.Column(db.String(32), unique=True, nullable=False)  # e.g. "#108042"
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    final_total = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def as_api(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "invoice_number": self.invoice_number,
            "subtotal": str(self.subtotal),
            "final_total": str(self.final_total),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
