from datetime import date, timedelta

import pytest

from storefront import create_app
from storefront.cli import seed_demo_data
from storefront.config import TestingConfig
from storefront.extensions import db
from storefront.model import Product, User
from storefront.services import build_services


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        seed_demo_data()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    """Request context for driving the services directly."""
    with app.test_request_context():
        yield


@pytest.fixture()
def services(ctx):
    return build_services({})


@pytest.fixture()
def shopper_id(ctx):
    return User.query.filter_by(email="shopper@example.com").one().id


def product_id(name):
    return Product.query.filter_by(name=name).one().id


def user_id(app, email):
    with app.app_context():
        return User.query.filter_by(email=email).one().id


def login(client, email):
    uid = user_id(client.application, email)
    with client.session_transaction() as sess:
        sess["user_id"] = uid
    return uid


def delivery_form(**overrides):
    form = {
        "customer_name": "Demo Shopper",
        "customer_contact": "+6591234567",
        "delivery_address": "1 Orchard Road",
        "postal_code": "238801",
        "payment_method": "card",
        "delivery_date": (date.today() + timedelta(days=2)).isoformat(),
        "delivery_time": "09:00-12:00",
        "order_notes": "Leave at the door",
    }
    form.update(overrides)
    return form


def messages(resp):
    return [m["message"] for m in resp.get_json()["data"]["messages"]]
