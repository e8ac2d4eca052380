"""In-process ordering backend.

Drives the Ordering domain directly, inside its own domain context, without
HTTP in between. Used for single-process deployments and end-to-end tests.
Menus are registered up front since the Ordering domain does not own them.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from shared.errors import Unauthorized

from ordering.domain import ordering
from ordering.order.order import Actor, ActorRole, Order
from ordering.order.placement import place_order
from ordering.order.queries import orders_for_customer, visible_order
from ordering.order.transition import transition_order
from storefront.catalog.catalog import Menu
from storefront.checkout.identity import AuthenticatedUser, GuestInfo
from storefront.gateway.port import OrderingBackend, OrderPayload, OrderReceipt, OrderView


def _actor_for(identity) -> Actor:
    if isinstance(identity, AuthenticatedUser):
        return Actor(user_id=identity.user_id, role=ActorRole.CUSTOMER.value)
    if isinstance(identity, GuestInfo):
        return Actor(role=ActorRole.GUEST.value, phone=identity.phone, email=identity.email)
    raise Unauthorized({"actor": ["Sign in or give your contact details to see this order"]})


def _isoformat(value):
    return value.isoformat() if value else None


def order_view(order: Order) -> OrderView:
    guest = order.guest_info
    return OrderView.from_payload(
        {
            "id": str(order.id),
            "restaurant_id": str(order.restaurant_id),
            "status": order.status,
            "total": order.total,
            "items": [
                {
                    "menu_item_id": str(item.menu_item_id),
                    "name": item.name,
                    "unit_price": item.unit_price,
                    "quantity": item.quantity,
                    "price_point_label": item.price_point_label,
                }
                for item in order.items
            ],
            "customer_id": str(order.customer_id) if order.customer_id else None,
            "guest_info": {"name": guest.name, "phone": guest.phone, "email": guest.email} if guest else None,
            "special_instructions": order.special_instructions,
            "estimated_ready_time": _isoformat(order.estimated_ready_time),
            "created_at": _isoformat(order.created_at),
            "updated_at": _isoformat(order.updated_at),
        }
    )


class InProcessBackend(OrderingBackend):
    """Ordering backend backed by the local Ordering domain."""

    def __init__(self, menus: list[Menu] | None = None, domain=None) -> None:
        self.domain = domain or ordering
        self.menus: dict[str, Menu] = {str(menu.restaurant_id): menu for menu in menus or []}

    def add_menu(self, menu: Menu) -> None:
        self.menus[str(menu.restaurant_id)] = menu

    def get_catalog(self, restaurant_id: str) -> Menu:
        try:
            return self.menus[str(restaurant_id)]
        except KeyError:
            raise ObjectNotFoundError(f"Restaurant {restaurant_id} has no menu") from None

    def create_order(self, payload: OrderPayload, idempotency_token: str) -> OrderReceipt:
        with self.domain.domain_context():
            result = place_order(
                restaurant_id=payload.restaurant_id,
                items=[item.to_dict() for item in payload.items],
                idempotency_token=idempotency_token,
                customer_id=payload.customer.user_id if payload.customer else None,
                guest_info=payload.guest_info.to_dict() if payload.guest_info else None,
                special_instructions=payload.special_instructions,
            )
            order = current_domain.repository_for(Order).get(result["order_id"])
            return OrderReceipt(order_view(order), duplicate=result["duplicate"], idempotency_token=idempotency_token)

    def get_order(self, order_id: str, identity=None) -> OrderView:
        with self.domain.domain_context():
            return order_view(visible_order(order_id, _actor_for(identity)))

    def list_orders_for_user(self, identity: AuthenticatedUser) -> list[OrderView]:
        with self.domain.domain_context():
            return [order_view(order) for order in orders_for_customer(identity.user_id)]

    def transition_order(self, order_id: str, new_status: str, identity=None) -> OrderView:
        with self.domain.domain_context():
            transition_order(order_id, new_status, _actor_for(identity))
            return order_view(current_domain.repository_for(Order).get(order_id))
