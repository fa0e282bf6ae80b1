from storefront.extensions import db
from storefront.model import LoyaltyTransaction, Promo, User

from .conftest import delivery_form, login, messages, user_id


def promo_id(app, code):
    with app.app_context():
        return Promo.query.filter_by(code=code).one().id


def test_admin_surface_requires_admin(client):
    assert client.get("/admin/promocodes").status_code == 401
    login(client, "shopper@example.com")
    assert client.get("/admin/promocodes").status_code == 403


def test_primary_admin_email_grants_access(app, client):
    app.config["PRIMARY_ADMIN_EMAIL"] = "shopper@example.com"
    login(client, "shopper@example.com")
    assert client.get("/admin/promocodes").status_code == 200


def test_list_promocodes(client):
    login(client, "admin@example.com")
    codes = {p["code"] for p in client.get("/admin/promocodes").get_json()["data"]["items"]}
    assert codes == {"WELCOME10", "TAKE5", "MERRY20"}


def test_create_promo_reports_every_problem(client):
    login(client, "admin@example.com")
    resp = client.post("/admin/promocodes", data={
        "code": " ",
        "type": "fixed",
        "amount": "-1",
        "min_total": "-5",
        "per_user_limit": "0",
        "max_uses": "x",
        "starts_at": "not-a-date",
    })
    assert resp.status_code == 302
    msgs = messages(client.get("/admin/promocodes"))
    assert msgs == [
        "Code is required",
        "Amount must be a positive number",
        "Min total must be a non-negative number",
        "Per-user limit must be a positive integer",
        "Max uses must be a positive integer",
        "Invalid starts_at datetime",
    ]


def test_create_promo(app, client):
    login(client, "admin@example.com")
    client.post("/admin/promocodes", data={
        "code": "spring15",
        "type": "percent",
        "amount": "15",
        "min_total": "10",
        "starts_at": "2024-03-01T00:00:00Z",
        "expires_at": "2024-06-01T00:00:00Z",
    })
    with app.app_context():
        p = Promo.query.filter_by(code="SPRING15").one()
        assert p.kind == "percent"
        assert str(p.amount) == "15.00"
        assert p.uses == 0
        assert p.starts_at.isoformat() == "2024-03-01T00:00:00"


def test_create_promo_rejects_bad_window_and_duplicates(client):
    login(client, "admin@example.com")
    client.post("/admin/promocodes", data={
        "code": "take5", "amount": "5",
        "starts_at": "2024-06-01T00:00:00", "expires_at": "2024-03-01T00:00:00",
    })
    msgs = messages(client.get("/admin/promocodes"))
    assert "starts_at must be before expires_at" in msgs
    assert "Promo code already exists" in msgs


def test_percent_promo_capped_at_100(client):
    login(client, "admin@example.com")
    client.post("/admin/promocodes", data={"code": "HUGE", "type": "percent", "amount": "150"})
    assert "Percent amount cannot exceed 100" in messages(client.get("/admin/promocodes"))


def test_update_promo(app, client):
    login(client, "admin@example.com")
    pid = promo_id(app, "MERRY20")

    client.post(f"/admin/promocodes/{pid}", data={"code": "take5", "type": "percent", "amount": "20"})
    assert "Promo code already used by another promo" in messages(client.get("/admin/promocodes"))

    client.post(f"/admin/promocodes/{pid}", data={
        "code": "merry20", "type": "percent", "amount": "25", "active": "0",
    })
    with app.app_context():
        p = db.session.get(Promo, pid)
        assert str(p.amount) == "25.00"
        assert p.active is False

    assert client.post("/admin/promocodes/9999", data={"code": "X", "amount": "1"}).status_code == 404


def test_delete_promo(app, client):
    login(client, "admin@example.com")
    pid = promo_id(app, "MERRY20")
    assert client.post(f"/admin/promocodes/{pid}/delete").status_code == 302
    with app.app_context():
        assert Promo.query.filter_by(code="MERRY20").first() is None
    assert client.post(f"/admin/promocodes/{pid}/delete").status_code == 404


def test_membership_plans_and_points(app, client):
    login(client, "admin@example.com")
    shopper = user_id(app, "shopper@example.com")

    data = client.get("/admin/membership-plans").get_json()["data"]
    assert [p["name"] for p in data["plans"]] == ["Basic", "Silver", "Gold"]
    member = next(m for m in data["members"] if m["id"] == shopper)
    assert (member["loyalty_points"], member["tier"]) == (300, "Silver")

    client.post(f"/admin/membership-plans/users/{shopper}/points", data={"loyalty_points": "650"})
    data = client.get("/admin/membership-plans").get_json()["data"]
    member = next(m for m in data["members"] if m["id"] == shopper)
    assert (member["loyalty_points"], member["tier"], member["membership_tier"]) == (650, "Gold", "Gold")
    assert (member["total_earned"], member["total_redeemed"]) == (0, 0)
    with app.app_context():
        adjust = LoyaltyTransaction.query.filter_by(user_id=shopper).one()
        assert (adjust.kind, adjust.points) == ("adjust", 350)
    assert "Loyalty points updated successfully." in [m["message"] for m in data["messages"]]

    client.post(f"/admin/membership-plans/users/{shopper}/points", data={"loyalty_points": "-3"})
    assert "Loyalty points must be a non-negative integer." in messages(client.get("/admin/membership-plans"))
    with app.app_context():
        assert db.session.get(User, shopper).loyalty_points == 650

    resp = client.post("/admin/membership-plans/users/9999/points", data={"loyalty_points": "1"})
    assert resp.status_code == 404


def test_invoice_listing(app, client):
    login(client, "shopper@example.com")
    with app.app_context():
        from storefront.model import Product
        bread = Product.query.filter_by(name="Bread").one().id
    client.post(f"/cart/add/{bread}", data={"quantity": "2"})
    client.post("/checkout", data=delivery_form())

    login(client, "admin@example.com")
    items = client.get("/admin/invoices").get_json()["data"]["items"]
    assert len(items) == 1
    assert items[0]["final_total"] == "3.60"

    detail = client.get(f"/admin/invoices/{items[0]['id']}").get_json()["data"]
    assert detail["order"]["items"][0]["product_name"] == "Bread"
    assert client.get("/admin/invoices/9999").status_code == 404
