from decimal import Decimal

import pytest

from storefront.errors import InsufficientStock, InvalidQuantity, NotFound, OutOfStock, Unavailable
from storefront.extensions import db
from storefront.model import Product

from .conftest import product_id


def test_add_snapshots_product(services):
    bread = product_id("Bread")
    change = services.cart.add(bread, "2")
    assert not change.adjusted
    [line] = services.cart.list()
    assert (line.product_id, line.product_name, line.unit_price, line.quantity) == (bread, "Bread", Decimal("1.80"), 2)
    services.cart.add(bread, 3)
    assert services.cart.list()[0].quantity == 5
    assert services.cart.subtotal() == Decimal("9.00")


def test_add_clamps_to_stock(services):
    apples = product_id("Apples")
    change = services.cart.add(apples, 60)
    assert change.adjusted
    assert change.line.quantity == 50
    assert change.message == 'Only 50 units of "Apples" are available. Cart quantity has been adjusted.'


def test_add_when_cart_already_holds_all_stock(services):
    apples = product_id("Apples")
    services.cart.add(apples, 50)
    with pytest.raises(Unavailable):
        services.cart.add(apples, 1)
    assert services.cart.list()[0].quantity == 50


def test_add_out_of_stock(services):
    milk = db.session.get(Product, product_id("Milk"))
    milk.quantity = 0
    db.session.commit()
    with pytest.raises(OutOfStock) as exc:
        services.cart.add(milk.id, 1)
    assert exc.value.message == 'Sorry, "Milk" is out of stock.'
    assert services.cart.list() == []


def test_add_unknown_product(services):
    with pytest.raises(NotFound):
        services.cart.add(9999, 1)


def test_set_quantity(services):
    bread = product_id("Bread")
    services.cart.add(bread, 1)
    services.cart.set_quantity(bread, "7")
    assert services.cart.list()[0].quantity == 7

    with pytest.raises(InsufficientStock) as exc:
        services.cart.set_quantity(bread, 81)
    assert exc.value.available == 80
    assert services.cart.list()[0].quantity == 7

    services.cart.set_quantity(bread, 0)
    assert services.cart.list() == []


def test_set_quantity_for_absent_line_is_noop(services):
    change = services.cart.set_quantity(product_id("Bread"), 3)
    assert change.line is None
    assert services.cart.list() == []


def test_remove_is_idempotent(services):
    bread = product_id("Bread")
    services.cart.add(bread, 1)
    services.cart.remove(bread)
    services.cart.remove(bread)
    assert services.cart.list() == []


def test_cart_mutations_do_not_write_stock(services):
    bread = product_id("Bread")
    services.cart.add(bread, 10)
    services.cart.clear()
    assert db.session.get(Product, bread).quantity == 80


@pytest.mark.parametrize("qty", ["-3", "0", "abc", "", None, -1])
def test_add_rejects_non_positive_quantity(services, qty):
    with pytest.raises(InvalidQuantity):
        services.cart.add(product_id("Bread"), qty)
    assert services.cart.list() == []
