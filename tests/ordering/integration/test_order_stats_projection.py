"""Integration tests for the restaurant statistics read models."""

from datetime import UTC, datetime, timedelta

from ordering.order.placement import place_order
from ordering.order.transition import transition_order
from ordering.projections.restaurant_order_stats import (
    RestaurantDailyOrders,
    RestaurantOrderStats,
    daily_orders,
    restaurant_stats,
)
from protean import current_domain


def _place(items, token, restaurant_id="rest-1"):
    return place_order(restaurant_id, items, token, customer_id="user-1")["order_id"]


def test_no_orders_yet():
    stats = restaurant_stats("rest-1")

    assert stats["total"] == 0
    assert stats["revenue"] == 0.0
    assert set(stats["by_status"].values()) == {0}
    assert stats["today_total"] == 0


def test_placement_updates_both_read_models(items):
    _place(items, "tok-1")

    stats = current_domain.repository_for(RestaurantOrderStats).get("rest-1")
    assert stats.total_orders == 1
    assert stats.pending == 1
    assert stats.revenue == 19.50

    today = datetime.now(UTC).date()
    daily = current_domain.repository_for(RestaurantDailyOrders).get(f"rest-1:{today.isoformat()}")
    assert daily.orders_placed == 1
    assert daily.revenue == 19.50


def test_status_counts_follow_the_order(items, kitchen):
    order_id = _place(items, "tok-1")
    for status in ["confirmed", "preparing", "ready", "completed"]:
        transition_order(order_id, status, kitchen)

    stats = restaurant_stats("rest-1")
    assert stats["by_status"]["completed"] == 1
    assert sum(stats["by_status"].values()) == 1
    assert stats["revenue"] == 19.50


def test_cancelled_orders_count_but_earn_nothing(items, alice):
    _place(items, "tok-1")
    cancelled = _place(items, "tok-2")
    transition_order(cancelled, "cancelled", alice)

    stats = restaurant_stats("rest-1")
    assert stats["total"] == 2
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["cancelled"] == 1
    assert stats["revenue"] == 19.50
    assert stats["today_total"] == 2
    assert stats["today_revenue"] == 19.50


def test_restaurants_are_separate(items):
    _place(items, "tok-1")
    _place(items, "tok-2", restaurant_id="rest-2")

    assert restaurant_stats("rest-1")["total"] == 1
    assert restaurant_stats("rest-2")["total"] == 1


def test_other_day_has_no_orders(items):
    _place(items, "tok-1")

    yesterday = datetime.now(UTC).date() - timedelta(days=1)
    stats = restaurant_stats("rest-1", today=yesterday)

    assert stats["total"] == 1
    assert stats["today_total"] == 0


class TestDailyOrders:
    def test_days_oldest_first_within_bounds(self, items):
        _place(items, "tok-1")
        today = datetime.now(UTC).date()
        earlier = today - timedelta(days=3)
        current_domain.repository_for(RestaurantDailyOrders).add(
            RestaurantDailyOrders(
                key=f"rest-1:{earlier.isoformat()}",
                restaurant_id="rest-1",
                date=earlier.isoformat(),
                orders_placed=4,
                revenue=52.0,
            )
        )

        assert daily_orders("rest-1") == [
            {"date": earlier.isoformat(), "orders_placed": 4, "revenue": 52.0},
            {"date": today.isoformat(), "orders_placed": 1, "revenue": 19.50},
        ]
        assert [day["date"] for day in daily_orders("rest-1", start=today)] == [today.isoformat()]
        assert [day["date"] for day in daily_orders("rest-1", end=today - timedelta(days=1))] == [earlier.isoformat()]

    def test_other_restaurants_are_excluded(self, items):
        _place(items, "tok-1", restaurant_id="rest-2")

        assert daily_orders("rest-1") == []
