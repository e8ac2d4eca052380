"""Reorder — a signed-in customer places a past order again.

The new order copies the item snapshots of the source order, prices
included, and starts over at ``pending``. Guests cannot reorder: they have
no account to tie the two orders together.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from shared.errors import Unauthorized

from ordering.domain import ordering
from ordering.order.order import Actor, ActorRole, Order, Party
from ordering.order.placement import token_locks
from ordering.order.queries import find_by_token

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ReorderOrder:
    source_order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    idempotency_token = String(required=True, max_length=100)
    special_instructions = Text()


@ordering.command_handler(part_of=Order)
class ReorderOrderHandler:
    @handle(ReorderOrder)
    def reorder(self, command):
        existing = find_by_token(command.idempotency_token)
        if existing is not None:
            return {"order_id": str(existing.id), "duplicate": True}

        repo = current_domain.repository_for(Order)
        source = repo.get(command.source_order_id)
        actor = Actor(user_id=command.customer_id, role=ActorRole.CUSTOMER.value)
        if source.party_of(actor) != Party.PLACER:
            raise Unauthorized({"actor": ["Only the customer who placed an order can reorder it"]})

        order = Order.place(
            restaurant_id=source.restaurant_id,
            items_data=[
                {
                    "menu_item_id": str(item.menu_item_id),
                    "name": item.name,
                    "unit_price": item.unit_price,
                    "quantity": item.quantity,
                    "price_point_id": item.price_point_id,
                    "price_point_label": item.price_point_label,
                }
                for item in source.items
            ],
            idempotency_token=command.idempotency_token,
            customer_id=command.customer_id,
            special_instructions=command.special_instructions or source.special_instructions,
        )
        repo.add(order)

        logger.info("Order reordered", source_order_id=str(source.id), order_id=str(order.id))
        return {"order_id": str(order.id), "duplicate": False}


def reorder(source_order_id, customer_id, idempotency_token, special_instructions=None) -> dict:
    command = ReorderOrder(
        source_order_id=source_order_id,
        customer_id=customer_id,
        idempotency_token=idempotency_token,
        special_instructions=special_instructions,
    )
    with token_locks.hold(idempotency_token):
        return current_domain.process(command, asynchronous=False)
