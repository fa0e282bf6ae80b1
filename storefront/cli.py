# storefront/cli.py
from datetime import datetime

import click
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import MembershipPlan, Product, Promo, User
from .utils.money import D

DEMO_PRODUCTS = [
    # name, price, quantity, category
    ("Apples", "1.50", 50, "Fruit"),
    ("Bananas", "0.80", 75, "Fruit"),
    ("Milk", "3.50", 50, "Dairy"),
    ("Bread", "1.80", 80, "Bakery"),
    ("Tomatoes", "1.50", 80, "Vegetables"),
    ("Broccoli", "5.00", 100, "Vegetables"),
    ("Cheddar Cheese", "4.50", 60, "Dairy"),
    ("Bell Pepper", "1.20", 90, "Vegetables"),
]

DEMO_PROMOS = [
    dict(code="WELCOME10", description="10% off your order", kind="percent", amount=D("10"),
         uses=2, per_user_limit=1),
    dict(code="TAKE5", description="$5 off orders of $20 or more", kind="fixed", amount=D("5"),
         min_total=D("20"), max_uses=100, per_user_limit=1),
    dict(code="MERRY20", description="20% off for the holidays", kind="percent", amount=D("20")),
]

DEMO_PLANS = [
    # name, multiplier, monthly fee, benefits
    ("Basic", "1.00", "0.00", "Earn 1 point per dollar spent"),
    ("Silver", "1.50", "9.99", "Earn 1.5x points, priority delivery slots"),
    ("Gold", "2.00", "19.99", "Earn 2x points, free delivery, early access to promotions"),
]

def seed_demo_data(reset=False):
    """Load the demo catalog, promos, plans and two accounts. Returns a count per table."""
    if reset:
        db.drop_all()
    db.create_all()
    counts = {"products": 0, "promos": 0, "plans": 0, "users": 0}

    for name, price, qty, category in DEMO_PRODUCTS:
        if Product.query.filter_by(name=name).first():
            continue
        db.session.add(Product(name=name, price=D(price), quantity=qty, category=category))
        counts["products"] += 1

    for data in DEMO_PROMOS:
        if Promo.query.filter_by(code=data["code"]).first():
            continue
        db.session.add(Promo(active=True, **{"uses": 0, **data}))
        counts["promos"] += 1

    for name, mult, fee, benefits in DEMO_PLANS:
        if MembershipPlan.query.filter_by(name=name).first():
            continue
        db.session.add(MembershipPlan(name=name, points_multiplier=D(mult), monthly_fee=D(fee), benefits=benefits))
        counts["plans"] += 1

    for email, name, role, points in (
        ("admin@example.com", "Store Admin", "admin", 0),
        ("shopper@example.com", "Demo Shopper", "user", 300),
    ):
        if User.query.filter_by(email=email).first():
            continue
        db.session.add(User(email=email, name=name, role=role, loyalty_points=points,
                            membership_tier="Silver" if points >= 200 else "Basic",
                            password_hash=generate_password_hash("password")))
        counts["users"] += 1

    db.session.commit()
    return counts

@click.command("seed-demo")
@click.option("--reset", is_flag=True, help="Drop and recreate every table first.")
def seed_demo(reset):
    counts = seed_demo_data(reset=reset)
    click.echo(", ".join(f"{k}: {v}" for k, v in counts.items()) + f" (seeded {datetime.utcnow():%Y-%m-%d %H:%M})")

@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")

def register_cli(app):
    app.cli.add_command(seed_demo)
    app.cli.add_command(create_admin)
