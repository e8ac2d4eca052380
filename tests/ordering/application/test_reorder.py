import pytest
from ordering.order.order import Order
from ordering.order.placement import place_order
from ordering.order.reorder import reorder
from ordering.order.transition import transition_order
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from shared.errors import Unauthorized


@pytest.fixture()
def source_id(items, kitchen):
    order_id = place_order("rest-1", items, "tok-1", customer_id="user-1", special_instructions="Extra pickles")[
        "order_id"
    ]
    for status in ["confirmed", "preparing", "ready", "completed"]:
        transition_order(order_id, status, kitchen)
    return order_id


def stored(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def test_reorder_copies_items_at_original_prices(source_id):
    result = reorder(source_id, "user-1", "tok-2")

    assert result["duplicate"] is False
    order = stored(result["order_id"])
    assert order.status == "pending"
    assert order.customer_id == "user-1"
    assert order.total == 19.50
    lines = sorted((item.menu_item_id, item.unit_price, item.quantity, item.price_point_label) for item in order.items)
    assert lines == [
        ("burger", 8.00, 2, None),
        ("fries", 3.50, 1, "Large"),
    ]
    assert order.special_instructions == "Extra pickles"


def test_new_instructions_replace_the_old_ones(source_id):
    result = reorder(source_id, "user-1", "tok-2", special_instructions="No pickles")

    assert stored(result["order_id"]).special_instructions == "No pickles"


def test_source_order_is_untouched(source_id):
    reorder(source_id, "user-1", "tok-2")

    assert stored(source_id).status == "completed"


def test_same_token_is_idempotent(source_id):
    first = reorder(source_id, "user-1", "tok-2")
    second = reorder(source_id, "user-1", "tok-2")

    assert second == {"order_id": first["order_id"], "duplicate": True}


def test_only_the_placer_can_reorder(source_id):
    with pytest.raises(Unauthorized):
        reorder(source_id, "user-2", "tok-2")


def test_guest_orders_cannot_be_reordered(items, guest_details):
    order_id = place_order("rest-1", items, "tok-1", guest_info=guest_details)["order_id"]

    with pytest.raises(Unauthorized):
        reorder(order_id, "user-1", "tok-2")


def test_unknown_source(items):
    with pytest.raises(ObjectNotFoundError):
        reorder("missing", "user-1", "tok-2")
