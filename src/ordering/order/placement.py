"""Order placement — command, handler and the idempotent entry point.

The storefront sends the same idempotency token on every retry of one
checkout. The first request creates the order; any later request with that
token gets the original order back flagged as a duplicate.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.queries import find_by_token
from ordering.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)

token_locks = KeyedLocks()


@ordering.command(part_of="Order")
class PlaceOrder:
    restaurant_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    idempotency_token = String(required=True, max_length=100)
    customer_id = Identifier()
    guest_info = Text()  # JSON: {name, phone, email}
    special_instructions = Text()


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        existing = find_by_token(command.idempotency_token)
        if existing is not None:
            logger.info(
                "Duplicate order submission",
                order_id=str(existing.id),
                idempotency_token=command.idempotency_token,
            )
            return {"order_id": str(existing.id), "duplicate": True}

        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        guest_info = json.loads(command.guest_info) if isinstance(command.guest_info, str) else command.guest_info

        order = Order.place(
            restaurant_id=command.restaurant_id,
            items_data=items_data,
            idempotency_token=command.idempotency_token,
            customer_id=command.customer_id,
            guest_info=guest_info,
            special_instructions=command.special_instructions,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            restaurant_id=str(order.restaurant_id),
            total=order.total,
        )
        return {"order_id": str(order.id), "duplicate": False}


def place_order(
    restaurant_id,
    items,
    idempotency_token,
    customer_id=None,
    guest_info=None,
    special_instructions=None,
) -> dict:
    """Place an order at most once per ``idempotency_token``.

    Returns ``{"order_id": ..., "duplicate": bool}``. Concurrent calls with
    the same token are serialized, so exactly one of them creates the order.
    """
    command = PlaceOrder(
        restaurant_id=restaurant_id,
        items=json.dumps(items),
        idempotency_token=idempotency_token,
        customer_id=customer_id,
        guest_info=json.dumps(guest_info) if guest_info else None,
        special_instructions=special_instructions,
    )
    with token_locks.hold(idempotency_token):
        return current_domain.process(command, asynchronous=False)
