"""Read-side lookups over the Order repository."""

from protean.utils.globals import current_domain
from shared.errors import Unauthorized

from ordering.order.order import CLOSED_STATUSES, Order

_CLOSED = [status.value for status in CLOSED_STATUSES]


def _orders(**filters) -> list[Order]:
    return current_domain.repository_for(Order)._dao.query.filter(**filters).all().items


def find_by_token(idempotency_token) -> Order | None:
    orders = _orders(idempotency_token=idempotency_token)
    return orders[0] if orders else None


def orders_for_customer(customer_id) -> list[Order]:
    """Every order the customer placed, newest first."""
    return sorted(_orders(customer_id=str(customer_id)), key=lambda order: order.created_at, reverse=True)


def active_orders_for_restaurant(restaurant_id) -> list[Order]:
    """Orders the kitchen still has to deal with, oldest first."""
    orders = [order for order in _orders(restaurant_id=str(restaurant_id)) if order.status not in _CLOSED]
    return sorted(orders, key=lambda order: order.created_at)


def visible_order(order_id, actor) -> Order:
    """Load an order, refusing actors who are neither its restaurant nor its placer."""
    order = current_domain.repository_for(Order).get(order_id)
    if not order.is_visible_to(actor):
        raise Unauthorized({"actor": ["You are not allowed to view this order"]})
    return order

