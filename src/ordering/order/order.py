"""Order aggregate — the restaurant's copy of a placed cart.

An Order is created once per idempotency token and then only moves along the
status state machine. Its items are snapshots of what the customer saw in the
cart (name, unit price, price point label) and, like ``total``, are never
changed after placement.

State Machine:
    pending → confirmed → preparing → ready → completed
    pending / confirmed / preparing → cancelled

``completed`` and ``cancelled`` are closed: nothing leaves them. ``ready``
only moves on to ``completed``.

Who may move an order:
    - staff of the owning restaurant: every edge
    - the placing customer (or guest with matching contact details):
      only pending → cancelled
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject
from shared.errors import (
    InvalidTransition,
    MissingIdentity,
    OrderClosed,
    StaleOrderState,
    Unauthorized,
)

from ordering.domain import ordering
from ordering.order.events import OrderPlaced, OrderStatusChanged


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActorRole(Enum):
    STAFF = "staff"
    CUSTOMER = "customer"
    GUEST = "guest"


class Party(Enum):
    """How an actor relates to a particular order."""

    RESTAURANT = "restaurant"
    PLACER = "placer"


CLOSED_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# (current, requested) → parties allowed to take the edge
_TRANSITIONS = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED): frozenset({Party.RESTAURANT}),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): frozenset({Party.RESTAURANT, Party.PLACER}),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING): frozenset({Party.RESTAURANT}),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): frozenset({Party.RESTAURANT}),
    (OrderStatus.PREPARING, OrderStatus.READY): frozenset({Party.RESTAURANT}),
    (OrderStatus.PREPARING, OrderStatus.CANCELLED): frozenset({Party.RESTAURANT}),
    (OrderStatus.READY, OrderStatus.COMPLETED): frozenset({Party.RESTAURANT}),
}


def allowed_transitions():
    """The transition table as ``{(current, requested): {party, ...}}`` of plain strings."""
    return {
        (current.value, requested.value): {party.value for party in parties}
        for (current, requested), parties in _TRANSITIONS.items()
    }


def _normalize_phone(phone) -> str:
    return re.sub(r"[^\d+]", "", phone or "")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class GuestInfo:
    """Contact details of a customer ordering without an account.

    Phone (and email, when given) are what a guest later presents to read or
    cancel their order.
    """

    name = String(required=True, max_length=100)
    phone = String(required=True, max_length=30)
    email = String(max_length=254)

    @invariant.post
    def validate_phone_format(self):
        phone = self.phone
        if not re.search(r"\d", phone) or not re.match(r"^\+?[\d\s\-()]+$", phone):
            raise ValidationError({"phone": [f"Invalid phone number: {phone!r}"]})


@ordering.value_object
class Actor:
    """Whoever is asking: restaurant staff, a signed-in customer or a guest."""

    user_id = String(max_length=255)
    role = String(required=True, choices=ActorRole)
    restaurant_id = Identifier()
    phone = String(max_length=30)
    email = String(max_length=254)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A frozen copy of one cart line."""

    menu_item_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    price_point_id = String(max_length=255)
    price_point_label = String(max_length=255)

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    restaurant_id = Identifier(required=True)
    customer_id = Identifier()
    guest_info = ValueObject(GuestInfo)
    items = HasMany(OrderItem)
    total = Float(required=True, min_value=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    special_instructions = Text()
    idempotency_token = String(required=True, max_length=100, unique=True)
    estimated_ready_time = DateTime()
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=20)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        restaurant_id,
        items_data,
        idempotency_token,
        customer_id=None,
        guest_info=None,
        special_instructions=None,
    ):
        """Create a pending order from a cart snapshot.

        Args:
            restaurant_id: The restaurant the cart was bound to.
            items_data: List of dicts with menu_item_id, name, unit_price,
                        quantity and optional price_point_id/price_point_label.
            idempotency_token: The client's token; one order per token.
            customer_id: Signed-in customer, if any.
            guest_info: Dict with name, phone and optional email for guests.
            special_instructions: Free text for the kitchen.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if not customer_id and not guest_info:
            raise MissingIdentity({"identity": ["An order needs a customer or guest contact details"]})

        items = [
            OrderItem(
                menu_item_id=item["menu_item_id"],
                name=item["name"],
                unit_price=item["unit_price"],
                quantity=item["quantity"],
                price_point_id=item.get("price_point_id"),
                price_point_label=item.get("price_point_label"),
            )
            for item in items_data
        ]
        total = round(sum(item.subtotal for item in items), 2)
        now = datetime.now(UTC)

        order = cls(
            restaurant_id=str(restaurant_id),
            customer_id=str(customer_id) if customer_id else None,
            guest_info=GuestInfo(**guest_info) if guest_info and not customer_id else None,
            items=items,
            total=total,
            status=OrderStatus.PENDING.value,
            special_instructions=special_instructions,
            idempotency_token=idempotency_token,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                restaurant_id=order.restaurant_id,
                customer_id=order.customer_id,
                guest_phone=order.guest_info.phone if order.guest_info else None,
                items=json.dumps(list(items_data), default=str),
                item_count=sum(item.quantity for item in items),
                total=total,
                idempotency_token=idempotency_token,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------
    @property
    def is_closed(self) -> bool:
        return OrderStatus(self.status) in CLOSED_STATUSES

    def party_of(self, actor) -> Party | None:
        """How ``actor`` relates to this order, or None for a stranger."""
        if actor is None:
            return None
        role = ActorRole(actor.role)
        if role == ActorRole.STAFF:
            if actor.restaurant_id and str(actor.restaurant_id) == str(self.restaurant_id):
                return Party.RESTAURANT
            return None
        if role == ActorRole.CUSTOMER:
            if self.customer_id and actor.user_id and str(actor.user_id) == str(self.customer_id):
                return Party.PLACER
            return None
        if self.guest_info is None or not actor.phone:
            return None
        if _normalize_phone(actor.phone) != _normalize_phone(self.guest_info.phone):
            return None
        if self.guest_info.email and (actor.email or "").strip().lower() != self.guest_info.email.strip().lower():
            return None
        return Party.PLACER

    def is_visible_to(self, actor) -> bool:
        return self.party_of(actor) is not None

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def transition(
        self,
        requested_status,
        actor,
        expected_status=None,
        reason=None,
        estimated_ready_time=None,
    ):
        """Move the order to ``requested_status`` on behalf of ``actor``.

        Checks run in a fixed order: closed order, stale expectation, edge
        not in the table, actor not allowed on the edge.
        """
        try:
            requested = OrderStatus(getattr(requested_status, "value", requested_status))
        except ValueError:
            raise InvalidTransition({"status": [f"Unknown order status {requested_status!r}"]}) from None
        current = OrderStatus(self.status)

        if current in CLOSED_STATUSES:
            raise OrderClosed({"status": [f"Order is already {current.value}"]})

        if expected_status is not None:
            expected = getattr(expected_status, "value", expected_status)
            if expected != current.value:
                raise StaleOrderState(
                    {"status": [f"Order is {current.value}, not {expected}; reload and try again"]}
                )

        allowed = _TRANSITIONS.get((current, requested))
        if allowed is None:
            raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {requested.value}"]})

        party = self.party_of(actor)
        if party not in allowed:
            raise Unauthorized({"actor": [f"Not allowed to move this order from {current.value} to {requested.value}"]})

        now = datetime.now(UTC)
        self.status = requested.value
        self.updated_at = now
        if requested == OrderStatus.CANCELLED:
            self.cancellation_reason = reason
            self.cancelled_by = ActorRole(actor.role).value
        if estimated_ready_time is not None and party == Party.RESTAURANT:
            self.estimated_ready_time = estimated_ready_time

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                restaurant_id=str(self.restaurant_id),
                from_status=current.value,
                to_status=requested.value,
                actor_id=actor.user_id,
                actor_role=ActorRole(actor.role).value,
                reason=reason,
                estimated_ready_time=self.estimated_ready_time,
                total=self.total,
                placed_at=self.created_at,
                changed_at=now,
            )
        )
