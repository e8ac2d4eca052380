"""Configurable fake ordering backend for development and testing.

Keeps menus and orders in memory and honours idempotency tokens the way the
real backend does. Failure modes can be configured at runtime:

- ``fail_next(n)``: the next ``n`` calls raise ``NetworkFailure`` before
  anything is stored (request never arrived).
- ``lose_responses(n)``: the next ``n`` order creations are committed but the
  caller still sees ``NetworkFailure`` (response lost on the way back).
- ``reject_next(exc)``: the next call raises a terminal error.
"""

import re
import threading
from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError
from shared.errors import InvalidTransition, NetworkFailure, OrderClosed, Unauthorized

from storefront.catalog.catalog import Menu
from storefront.checkout.identity import AuthenticatedUser, GuestInfo
from storefront.gateway.port import (
    OrderingBackend,
    OrderLineView,
    OrderPayload,
    OrderReceipt,
    OrderView,
    checked_status,
)

_CLOSED = {"completed", "cancelled"}
_EDGES = {
    ("pending", "confirmed"),
    ("confirmed", "preparing"),
    ("preparing", "ready"),
    ("ready", "completed"),
    ("pending", "cancelled"),
    ("confirmed", "cancelled"),
    ("preparing", "cancelled"),
}


def _digits(phone) -> str:
    return re.sub(r"[^\d+]", "", phone or "")


def _folded(email) -> str:
    return (email or "").strip().lower()


class FakeBackend(OrderingBackend):
    """In-memory ordering backend."""

    def __init__(self, menus: list[Menu] | None = None) -> None:
        self.menus: dict[str, Menu] = {}
        self.orders: dict[str, OrderView] = {}
        self.tokens: dict[str, str] = {}
        self.calls: list[dict] = []
        self._failures: list[Exception] = []
        self._lost_responses = 0
        self._lock = threading.Lock()
        for menu in menus or []:
            self.add_menu(menu)

    # -------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------
    def add_menu(self, menu: Menu) -> None:
        self.menus[str(menu.restaurant_id)] = menu

    def fail_next(self, times: int = 1, message: str = "Connection reset") -> None:
        self._failures.extend(NetworkFailure(message) for _ in range(times))

    def reject_next(self, exc: Exception) -> None:
        self._failures.append(exc)

    def lose_responses(self, times: int = 1) -> None:
        self._lost_responses += times

    def set_status(self, order_id: str, status: str) -> OrderView:
        """Move an order as restaurant staff would."""
        order = replace(
            self.orders[order_id],
            status=checked_status(status),
            updated_at=datetime.now(UTC).isoformat(),
        )
        self.orders[order_id] = order
        return order

    # -------------------------------------------------------------------
    # OrderingBackend
    # -------------------------------------------------------------------
    def get_catalog(self, restaurant_id: str) -> Menu:
        self._record("get_catalog", restaurant_id=restaurant_id)
        try:
            return self.menus[str(restaurant_id)]
        except KeyError:
            raise ObjectNotFoundError(f"Restaurant {restaurant_id} has no menu") from None

    def create_order(self, payload: OrderPayload, idempotency_token: str) -> OrderReceipt:
        self._record("create_order", idempotency_token=idempotency_token, payload=payload.to_dict())

        with self._lock:
            existing = self.tokens.get(idempotency_token)
            if existing is not None:
                receipt = OrderReceipt(self.orders[existing], duplicate=True, idempotency_token=idempotency_token)
            else:
                order = self._new_order(payload)
                self.orders[order.id] = order
                self.tokens[idempotency_token] = order.id
                receipt = OrderReceipt(order, duplicate=False, idempotency_token=idempotency_token)

            if self._lost_responses:
                self._lost_responses -= 1
                raise NetworkFailure("Response lost after the order was stored")
        return receipt

    def get_order(self, order_id: str, identity=None) -> OrderView:
        self._record("get_order", order_id=order_id)
        return self._visible_order(order_id, identity)

    def list_orders_for_user(self, identity: AuthenticatedUser) -> list[OrderView]:
        self._record("list_orders_for_user", user_id=identity.user_id)
        orders = [order for order in self.orders.values() if order.customer_id == identity.user_id]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def transition_order(self, order_id: str, new_status: str, identity=None) -> OrderView:
        self._record("transition_order", order_id=order_id, new_status=new_status)
        with self._lock:
            order = self._visible_order(order_id, identity)
            if order.status in _CLOSED:
                raise OrderClosed({"status": [f"Order is already {order.status}"]})
            if (order.status, new_status) not in _EDGES:
                raise InvalidTransition({"status": [f"Cannot change order from {order.status} to {new_status}"]})
            if (order.status, new_status) != ("pending", "cancelled"):
                raise Unauthorized({"actor": ["Only the restaurant can make this change"]})
            return self.set_status(order_id, new_status)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _record(self, method: str, **details) -> None:
        self.calls.append({"method": method, **details})
        if self._failures:
            raise self._failures.pop(0)

    def _new_order(self, payload: OrderPayload) -> OrderView:
        now = datetime.now(UTC).isoformat()
        items = tuple(
            OrderLineView(
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                price_point_label=line.price_point_label,
                menu_item_id=line.menu_item_id,
            )
            for line in payload.items
        )
        return OrderView(
            id=str(uuid4()),
            restaurant_id=payload.restaurant_id,
            status="pending",
            total=round(sum(line.unit_price * line.quantity for line in items), 2),
            items=items,
            customer_id=payload.customer.user_id if payload.customer else None,
            guest_info=payload.guest_info,
            special_instructions=payload.special_instructions,
            created_at=now,
            updated_at=now,
        )

    def _visible_order(self, order_id: str, identity) -> OrderView:
        order = self.orders.get(order_id)
        if order is None:
            raise ObjectNotFoundError(f"Order {order_id} does not exist")

        if isinstance(identity, AuthenticatedUser) and order.customer_id == identity.user_id:
            return order
        if isinstance(identity, GuestInfo) and order.guest_info is not None:
            if _digits(order.guest_info.phone) == _digits(identity.phone) and (
                not order.guest_info.email or _folded(order.guest_info.email) == _folded(identity.email)
            ):
                return order
        raise Unauthorized({"actor": ["You are not allowed to view this order"]})
