import pytest
from storefront.catalog.catalog import CatalogItem, Menu, MenuSection, PricePoint
from storefront.storage import SharedStorage


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def burger():
    return CatalogItem(id="burger", restaurant_id="rest-1", name="Burger", price=8.00)


@pytest.fixture()
def fries():
    return CatalogItem(
        id="fries",
        restaurant_id="rest-1",
        name="Fries",
        price=2.50,
        price_points=(
            PricePoint(id="regular", label="Regular", price=2.50, is_default=True),
            PricePoint(id="large", label="Large", price=3.50),
        ),
    )


@pytest.fixture()
def sold_out_shake():
    return CatalogItem(id="shake", restaurant_id="rest-1", name="Shake", price=4.00, available=False)


@pytest.fixture()
def pizza():
    return CatalogItem(id="margherita", restaurant_id="rest-2", name="Margherita", price=11.00)


@pytest.fixture()
def menu(burger, fries, sold_out_shake):
    return Menu(
        restaurant_id="rest-1",
        sections=(
            MenuSection(name="Mains", items=(burger,)),
            MenuSection(name="Sides", items=(fries, sold_out_shake)),
        ),
    )


@pytest.fixture()
def shared_storage():
    return SharedStorage()
