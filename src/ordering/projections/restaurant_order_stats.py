"""Restaurant order statistics — the numbers behind the staff dashboard.

Two read models, both fed by Order events:

- ``RestaurantOrderStats``: running totals per restaurant, with a count per
  order status and revenue from orders that were not cancelled.
- ``RestaurantDailyOrders``: orders placed and revenue per restaurant per
  calendar day (UTC), keyed ``<restaurant_id>:<YYYY-MM-DD>``.
"""

from datetime import UTC, date, datetime

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.events import OrderPlaced, OrderStatusChanged
from ordering.order.order import Order, OrderStatus

STATUSES = [status.value for status in OrderStatus]


@ordering.projection
class RestaurantOrderStats:
    restaurant_id = Identifier(identifier=True, required=True)
    total_orders = Integer(default=0)
    pending = Integer(default=0)
    confirmed = Integer(default=0)
    preparing = Integer(default=0)
    ready = Integer(default=0)
    completed = Integer(default=0)
    cancelled = Integer(default=0)
    revenue = Float(default=0.0)


@ordering.projection
class RestaurantDailyOrders:
    key = String(identifier=True, required=True, max_length=100)
    restaurant_id = Identifier(required=True)
    date = String(required=True, max_length=10)  # YYYY-MM-DD
    orders_placed = Integer(default=0)
    revenue = Float(default=0.0)


def _daily_key(restaurant_id, day: date) -> str:
    return f"{restaurant_id}:{day.isoformat()}"


def _stats_for(restaurant_id):
    repo = current_domain.repository_for(RestaurantOrderStats)
    try:
        return repo.get(str(restaurant_id))
    except ObjectNotFoundError:
        return RestaurantOrderStats(restaurant_id=str(restaurant_id), **dict.fromkeys(STATUSES, 0))


def _daily_for(restaurant_id, day: date):
    key = _daily_key(restaurant_id, day)
    repo = current_domain.repository_for(RestaurantDailyOrders)
    try:
        return repo.get(key)
    except ObjectNotFoundError:
        return RestaurantDailyOrders(
            key=key,
            restaurant_id=str(restaurant_id),
            date=day.isoformat(),
            orders_placed=0,
            revenue=0.0,
        )


@ordering.projector(projector_for=RestaurantOrderStats, aggregates=[Order])
class RestaurantOrderStatsProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        stats = _stats_for(event.restaurant_id)
        stats.total_orders = (stats.total_orders or 0) + 1
        stats.pending = (stats.pending or 0) + 1
        stats.revenue = round((stats.revenue or 0.0) + event.total, 2)
        current_domain.repository_for(RestaurantOrderStats).add(stats)

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        stats = _stats_for(event.restaurant_id)
        setattr(stats, event.from_status, max((getattr(stats, event.from_status) or 0) - 1, 0))
        setattr(stats, event.to_status, (getattr(stats, event.to_status) or 0) + 1)
        if event.to_status == OrderStatus.CANCELLED.value:
            stats.revenue = round((stats.revenue or 0.0) - event.total, 2)
        current_domain.repository_for(RestaurantOrderStats).add(stats)


@ordering.projector(projector_for=RestaurantDailyOrders, aggregates=[Order])
class RestaurantDailyOrdersProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        daily = _daily_for(event.restaurant_id, event.placed_at.date())
        daily.orders_placed = (daily.orders_placed or 0) + 1
        daily.revenue = round((daily.revenue or 0.0) + event.total, 2)
        current_domain.repository_for(RestaurantDailyOrders).add(daily)

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        if event.to_status != OrderStatus.CANCELLED.value:
            return
        daily = _daily_for(event.restaurant_id, event.placed_at.date())
        daily.revenue = round((daily.revenue or 0.0) - event.total, 2)
        current_domain.repository_for(RestaurantDailyOrders).add(daily)


def restaurant_stats(restaurant_id, today: date | None = None) -> dict:
    """Dashboard summary: totals, per-status counts and today's figures."""
    today = today or datetime.now(UTC).date()
    stats = _stats_for(restaurant_id)
    daily = _daily_for(restaurant_id, today)
    return {
        "restaurant_id": str(restaurant_id),
        "total": stats.total_orders or 0,
        "by_status": {status: getattr(stats, status) or 0 for status in STATUSES},
        "revenue": stats.revenue or 0.0,
        "today_total": daily.orders_placed or 0,
        "today_revenue": daily.revenue or 0.0,
    }


def daily_orders(restaurant_id, start: date | None = None, end: date | None = None) -> list[dict]:
    """Orders placed and revenue per day, oldest first. ``start`` and ``end`` are inclusive."""
    rows = (
        current_domain.repository_for(RestaurantDailyOrders)
        ._dao.query.filter(restaurant_id=str(restaurant_id))
        .all()
        .items
    )
    days = [
        {"date": row.date, "orders_placed": row.orders_placed or 0, "revenue": row.revenue or 0.0}
        for row in rows
        if (start is None or row.date >= start.isoformat()) and (end is None or row.date <= end.isoformat())
    ]
    return sorted(days, key=lambda day: day["date"])
