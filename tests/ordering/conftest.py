import pytest
from ordering.order.order import Actor, Order


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Order fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def items():
    return [
        {"menu_item_id": "burger", "name": "Burger", "unit_price": 8.00, "quantity": 2},
        {
            "menu_item_id": "fries",
            "name": "Fries",
            "unit_price": 3.50,
            "quantity": 1,
            "price_point_id": "large",
            "price_point_label": "Large",
        },
    ]


@pytest.fixture()
def guest_details():
    return {"name": "Bob", "phone": "+1 (555) 010-0200", "email": "bob@example.com"}


@pytest.fixture()
def kitchen():
    return Actor(user_id="chef-1", role="staff", restaurant_id="rest-1")


@pytest.fixture()
def other_kitchen():
    return Actor(user_id="chef-2", role="staff", restaurant_id="rest-2")


@pytest.fixture()
def alice():
    return Actor(user_id="user-1", role="customer")


@pytest.fixture()
def guest():
    return Actor(role="guest", phone="+15550100200", email="Bob@Example.com")


@pytest.fixture()
def customer_order(items):
    order = Order.place(restaurant_id="rest-1", items_data=items, idempotency_token="tok-alice", customer_id="user-1")
    order._events.clear()
    return order


@pytest.fixture()
def guest_order(items, guest_details):
    order = Order.place(
        restaurant_id="rest-1", items_data=items, idempotency_token="tok-guest", guest_info=guest_details
    )
    order._events.clear()
    return order
