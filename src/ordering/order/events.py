"""Domain events for the Order aggregate.

Events are versioned, immutable facts. Projectors consume them to maintain
the restaurant statistics read model.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A customer's cart was accepted as a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    customer_id = Identifier()
    guest_phone = String(max_length=30)
    items = Text(required=True)  # JSON: list of item dicts
    item_count = Integer(required=True)
    total = Float(required=True)
    idempotency_token = String(required=True, max_length=100)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along the restaurant's status state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    from_status = String(required=True, max_length=20)
    to_status = String(required=True, max_length=20)
    actor_id = String(max_length=255)
    actor_role = String(required=True, max_length=20)
    reason = String(max_length=500)
    estimated_ready_time = DateTime()
    total = Float(required=True)
    placed_at = DateTime(required=True)
    changed_at = DateTime(required=True)
