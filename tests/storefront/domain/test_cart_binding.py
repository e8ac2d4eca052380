"""Tests for the cart's restaurant binding and the cross-restaurant policy."""

import pytest
from protean.exceptions import ValidationError
from shared.errors import RestaurantMismatch
from storefront.cart.cart import Cart
from storefront.cart.events import CartRestaurantBound
from storefront.catalog.catalog import CatalogItem


@pytest.fixture()
def cart():
    return Cart.create()


class TestBindRestaurant:
    def test_binding_empty_cart_drops_nothing(self, cart):
        assert cart.bind_restaurant("rest-1") is False
        assert cart.restaurant_id == "rest-1"

    def test_rebinding_same_restaurant_is_a_no_op(self, cart, burger):
        cart.add_item(burger)
        cart.pull_events()

        assert cart.bind_restaurant("rest-1") is False
        assert len(cart.lines) == 1
        assert cart.pull_events() == []

    def test_rebinding_other_restaurant_drops_lines(self, cart, burger):
        cart.add_item(burger)
        cart.pull_events()

        assert cart.bind_restaurant("rest-2") is True

        assert cart.is_empty()
        assert cart.restaurant_id == "rest-2"
        event = cart.pull_events()[0]
        assert isinstance(event, CartRestaurantBound)
        assert event.previous_restaurant_id == "rest-1"
        assert event.lines_dropped == 1


class TestCrossRestaurantAdd:
    def test_item_from_other_restaurant_is_rejected(self, cart, burger, pizza):
        cart.add_item(burger)

        with pytest.raises(RestaurantMismatch):
            cart.add_item(pizza)

        assert cart.restaurant_id == "rest-1"
        assert [line.name for line in cart.lines] == ["Burger"]

    def test_allow_rebind_clears_and_rebinds(self, cart, burger, pizza):
        cart.add_item(burger, quantity=2)

        cart.add_item(pizza, allow_rebind=True)

        assert cart.restaurant_id == "rest-2"
        assert [line.name for line in cart.lines] == ["Margherita"]
        assert cart.total() == 11.00

    def test_rejected_line_leaves_cart_bound_to_original_restaurant(self, cart, burger):
        cart.add_item(burger, quantity=2)
        cart.pull_events()
        long_name = CatalogItem(id="special", restaurant_id="rest-2", name="N" * 300, price=5.00)

        with pytest.raises(ValidationError):
            cart.add_item(long_name, allow_rebind=True)

        assert cart.restaurant_id == "rest-1"
        assert [(line.name, line.quantity) for line in cart.lines] == [("Burger", 2)]
        assert cart.pull_events() == []
