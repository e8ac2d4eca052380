"""Shared BDD fixtures and step definitions for checkout."""

import pytest
from pytest_bdd import given, parsers, then
from storefront.cart.store import CartStore
from storefront.gateway.fake_adapter import FakeBackend


@pytest.fixture()
def error():
    """Container for the last captured failure."""
    return {"exc": None}


@pytest.fixture()
def outcome():
    return {"placed": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the menu of restaurant "{restaurant_id}"'), target_fixture="backend")
def restaurant_menu(menu, restaurant_id):
    assert menu.restaurant_id == restaurant_id
    return FakeBackend(menus=[menu])


@given("an empty cart", target_fixture="cart")
def empty_cart():
    return CartStore()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the cart is empty")
def cart_is_empty(cart):
    assert cart.is_empty()


@then(parsers.cfparse("the cart holds {count:d} item"))
@then(parsers.cfparse("the cart holds {count:d} items"))
def cart_holds(cart, count):
    assert cart.item_count() == count


@then(parsers.cfparse("the cart total is {total:f}"))
def cart_total_is(cart, total):
    assert cart.total() == pytest.approx(total)


@then(parsers.cfparse('the cart action fails with "{code}"'))
@then(parsers.cfparse('the checkout fails with "{code}"'))
def action_fails_with(error, code):
    assert error["exc"] is not None, f"Expected a {code} failure but none was raised"
    assert error["exc"].code == code
