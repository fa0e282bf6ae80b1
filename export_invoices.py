import os
import sys

import pandas as pd
from storefront import create_app
from storefront.model import Invoice

# Create an app instance
app = create_app()

# Use the app's context to access the database
with app.app_context():
    # Query all invoices, newest first
    invoices = Invoice.query.order_by(Invoice.created_at.desc()).all()

    # One row per invoice with its order snapshot
    invoice_data = [
        {
            "Invoice Number": inv.invoice_number,
            "Order ID": inv.order_id,
            "User ID": inv.user_id,
            "Customer": inv.order.customer_name if inv.order else None,
            "Payment Method": inv.order.payment_method if inv.order else None,
            "Delivery Date": inv.order.delivery_date if inv.order else None,
            "Delivery Time": inv.order.delivery_time if inv.order else None,
            "Subtotal": float(inv.subtotal),
            "Promo Code": inv.order.promo_code if inv.order else None,
            "Promo Discount": float(inv.order.promo_discount) if inv.order else 0.0,
            "Loyalty Discount": float(inv.order.loyalty_discount) if inv.order else 0.0,
            "Final Total": float(inv.final_total),
            "Points Earned": inv.order.points_earned if inv.order else 0,
            "Created At": inv.created_at,
        }
        for inv in invoices
    ]

    # Convert the list of dictionaries to a pandas DataFrame
    df = pd.DataFrame(invoice_data)

    # Export to Excel (path from argv, default inside the instance folder)
    excel_file_path = sys.argv[1] if len(sys.argv) > 1 else os.path.join(app.instance_path, "invoices_export.xlsx")
    df.to_excel(excel_file_path, index=False)

    print(f"{len(invoice_data)} invoices have been exported to Excel at {excel_file_path}")
