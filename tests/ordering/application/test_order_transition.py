"""Tests for serialized status changes through the command handler."""

import threading

import pytest
from ordering.domain import ordering
from ordering.order.order import Actor, Order
from ordering.order.placement import place_order
from ordering.order.transition import transition_order
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from shared.errors import InvalidTransition, OrderClosed, StaleOrderState, Unauthorized


@pytest.fixture()
def order_id(items):
    return place_order("rest-1", items, "tok-1", customer_id="user-1")["order_id"]


def stored(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def test_kitchen_walks_the_order_to_completion(order_id, kitchen):
    for status in ["confirmed", "preparing", "ready", "completed"]:
        assert transition_order(order_id, status, kitchen) == status

    order = stored(order_id)
    assert order.status == "completed"
    assert order.total == 19.50


def test_customer_cancels_with_reason(order_id, alice):
    transition_order(order_id, "cancelled", alice, reason="Ordered twice")

    order = stored(order_id)
    assert order.status == "cancelled"
    assert order.cancellation_reason == "Ordered twice"
    assert order.cancelled_by == "customer"


def test_rejections_leave_the_stored_order_alone(order_id, alice, kitchen):
    with pytest.raises(Unauthorized):
        transition_order(order_id, "confirmed", alice)
    with pytest.raises(InvalidTransition):
        transition_order(order_id, "ready", kitchen)

    assert stored(order_id).status == "pending"


def test_stale_expectation(order_id, kitchen):
    transition_order(order_id, "confirmed", kitchen, expected_status="pending")

    with pytest.raises(StaleOrderState):
        transition_order(order_id, "preparing", kitchen, expected_status="pending")
    assert stored(order_id).status == "confirmed"


def test_closed_order(order_id, alice):
    transition_order(order_id, "cancelled", alice)

    with pytest.raises(OrderClosed):
        transition_order(order_id, "cancelled", alice)


def test_unknown_order(kitchen):
    with pytest.raises(ObjectNotFoundError):
        transition_order("missing", "confirmed", kitchen)


def test_competing_changes_apply_one_at_a_time(order_id, kitchen, alice):
    """The kitchen confirms while the customer cancels: exactly one wins."""
    outcomes = {}

    def act(name, status, actor):
        with ordering.domain_context():
            try:
                outcomes[name] = transition_order(order_id, status, actor, expected_status="pending")
            except (StaleOrderState, OrderClosed, Unauthorized) as exc:
                outcomes[name] = exc

    threads = [
        threading.Thread(target=act, args=("kitchen", "confirmed", kitchen)),
        threading.Thread(target=act, args=("customer", "cancelled", alice)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [value for value in outcomes.values() if isinstance(value, str)]
    losers = [value for value in outcomes.values() if isinstance(value, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], StaleOrderState | OrderClosed)
    assert stored(order_id).status == winners[0]


def test_concurrent_kitchen_steps_never_skip(order_id):
    chefs = [Actor(user_id=f"chef-{n}", role="staff", restaurant_id="rest-1") for n in range(5)]
    successes = []

    def confirm(chef):
        with ordering.domain_context():
            try:
                successes.append(transition_order(order_id, "confirmed", chef))
            except InvalidTransition:
                pass

    threads = [threading.Thread(target=confirm, args=(chef,)) for chef in chefs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert successes == ["confirmed"]
    assert stored(order_id).status == "confirmed"
