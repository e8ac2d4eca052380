"""Shared BDD fixtures and step definitions for the Order state machine."""

import pytest
from ordering.order.events import OrderPlaced, OrderStatusChanged
from ordering.order.order import Actor, Order
from pytest_bdd import given, parsers, then

_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderStatusChanged": OrderStatusChanged,
}


@pytest.fixture()
def error():
    """Container for captured rule violations."""
    return {"exc": None}


def _staff_of(restaurant_id):
    return Actor(user_id=f"chef-{restaurant_id}", role="staff", restaurant_id=restaurant_id)


def _customer(user_id):
    return Actor(user_id=user_id, role="customer")


@pytest.fixture()
def staff_of():
    return _staff_of


@pytest.fixture()
def customer():
    return _customer


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a pending order placed by customer "{customer_id}"'), target_fixture="order")
def pending_order(customer_id):
    order = Order.place(
        restaurant_id="rest-1",
        items_data=[{"menu_item_id": "burger", "name": "Burger", "unit_price": 8.0, "quantity": 2}],
        idempotency_token="tok-bdd",
        customer_id=customer_id,
    )
    order._events.clear()
    return order


@given(parsers.cfparse('staff of "{restaurant_id}" has moved the order to "{status}"'))
def staff_has_moved(order, restaurant_id, status):
    order.transition(status, _staff_of(restaurant_id))
    order._events.clear()


@given(parsers.cfparse('customer "{customer_id}" has moved the order to "{status}"'))
def customer_has_moved(order, customer_id, status):
    order.transition(status, _customer(customer_id))
    order._events.clear()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse('the order action fails with "{code}"'))
def order_action_fails(error, code):
    assert error["exc"] is not None, f"Expected a {code} failure but none was raised"
    assert error["exc"].code == code


@then(parsers.cfparse("a {event_type} event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"
