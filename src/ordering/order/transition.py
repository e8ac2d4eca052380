"""Order status changes — command, handler and the serialized entry point."""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Actor, Order
from ordering.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)

_order_locks = KeyedLocks()


@ordering.command(part_of="Order")
class TransitionOrder:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    actor_id = String(max_length=255)
    actor_role = String(required=True, max_length=20)
    actor_restaurant_id = Identifier()
    actor_phone = String(max_length=30)
    actor_email = String(max_length=254)
    expected_status = String(max_length=20)
    reason = String(max_length=500)
    estimated_ready_time = DateTime()


@ordering.command_handler(part_of=Order)
class TransitionOrderHandler:
    @handle(TransitionOrder)
    def transition_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        order.transition(
            command.status,
            Actor(
                user_id=command.actor_id,
                role=command.actor_role,
                restaurant_id=command.actor_restaurant_id,
                phone=command.actor_phone,
                email=command.actor_email,
            ),
            expected_status=command.expected_status,
            reason=command.reason,
            estimated_ready_time=command.estimated_ready_time,
        )
        repo.add(order)

        logger.info(
            "Order status changed",
            order_id=str(order.id),
            from_status=previous,
            to_status=order.status,
            actor_role=command.actor_role,
        )
        return order.status


def transition_order(
    order_id,
    status,
    actor: Actor,
    expected_status=None,
    reason=None,
    estimated_ready_time=None,
) -> str:
    """Apply one status change; changes to the same order never interleave."""
    command = TransitionOrder(
        order_id=order_id,
        status=status,
        actor_id=actor.user_id,
        actor_role=actor.role,
        actor_restaurant_id=actor.restaurant_id,
        actor_phone=actor.phone,
        actor_email=actor.email,
        expected_status=expected_status,
        reason=reason,
        estimated_ready_time=estimated_ready_time,
    )
    with _order_locks.hold(order_id):
        return current_domain.process(command, asynchronous=False)
