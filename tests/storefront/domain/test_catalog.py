"""Tests for menu snapshot types and payload parsing."""

import pytest
from shared.errors import CatalogIntegrityError
from storefront.catalog.catalog import CatalogItem, Menu, PricePoint


class TestCatalogItem:
    def test_two_default_price_points_are_rejected(self):
        with pytest.raises(CatalogIntegrityError):
            CatalogItem(
                id="fries",
                restaurant_id="rest-1",
                name="Fries",
                price=2.50,
                price_points=(
                    PricePoint(id="a", label="A", price=1.0, is_default=True),
                    PricePoint(id="b", label="B", price=2.0, is_default=True),
                ),
            )

    def test_price_point_lookup(self, fries):
        assert fries.price_point("large").label == "Large"
        assert fries.price_point("jumbo") is None

    def test_items_are_immutable(self, burger):
        with pytest.raises(AttributeError):
            burger.price = 1.0


class TestMenu:
    def test_items_flattens_sections(self, menu):
        assert [item.id for item in menu.items()] == ["burger", "fries", "shake"]

    def test_find_item(self, menu):
        assert menu.find_item("fries").name == "Fries"
        assert menu.find_item("nope") is None

    def test_from_payload_accepts_camel_case_keys(self):
        menu = Menu.from_payload(
            {
                "restaurant": "rest-9",
                "sections": [
                    {
                        "name": "Drinks",
                        "items": [
                            {
                                "_id": "cola",
                                "name": "Cola",
                                "price": 2.0,
                                "pricePoints": [
                                    {"_id": "s", "name": "Small", "price": 2.0},
                                    {"_id": "l", "name": "Large", "price": 3.0, "isDefault": True},
                                ],
                            }
                        ],
                    }
                ],
            }
        )
        cola = menu.find_item("cola")
        assert menu.restaurant_id == "rest-9"
        assert cola.restaurant_id == "rest-9"
        assert cola.default_price_point.id == "l"
        assert cola.available is True

    def test_from_payload_prefers_explicit_restaurant_id(self):
        menu = Menu.from_payload({"restaurant_id": "other", "sections": []}, restaurant_id="rest-1")
        assert menu.restaurant_id == "rest-1"
