"""Ordering backend port (abstract interface).

Defines everything the storefront needs from the outside world: the
restaurant's menu and the order endpoints. Adapters translate transport
problems into ``NetworkFailure`` (retry with the same idempotency token) and
rejected input into ``RuleViolation`` subclasses (fix and resubmit).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from shared.errors import ProtocolViolation

from storefront.catalog.catalog import Menu
from storefront.checkout.identity import AuthenticatedUser, GuestInfo, Identity

ORDER_STATUSES = frozenset({"pending", "confirmed", "preparing", "ready", "completed", "cancelled"})


def checked_status(value) -> str:
    if value not in ORDER_STATUSES:
        raise ProtocolViolation({"status": [f"Unknown order status {value!r}"]})
    return value


# ---------------------------------------------------------------------------
# Outbound payload
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OrderLinePayload:
    """A frozen copy of one cart line, detached from catalog data."""

    menu_item_id: str
    name: str
    unit_price: float
    quantity: int
    price_point_id: str | None = None
    price_point_label: str | None = None

    def to_dict(self):
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "price_point_id": self.price_point_id,
            "price_point_label": self.price_point_label,
        }


@dataclass(frozen=True)
class OrderPayload:
    restaurant_id: str
    items: tuple[OrderLinePayload, ...]
    customer: AuthenticatedUser | None = None
    guest_info: GuestInfo | None = None
    special_instructions: str | None = None

    @property
    def identity(self) -> Identity | None:
        return self.customer or self.guest_info

    def to_dict(self):
        return {
            "restaurant_id": self.restaurant_id,
            "items": [item.to_dict() for item in self.items],
            "guest_info": self.guest_info.to_dict() if self.guest_info else None,
            "special_instructions": self.special_instructions,
        }


# ---------------------------------------------------------------------------
# Inbound views
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OrderLineView:
    name: str
    unit_price: float
    quantity: int
    price_point_label: str | None = None
    menu_item_id: str | None = None


@dataclass(frozen=True)
class OrderView:
    """The customer's read-only copy of a server-side order."""

    id: str
    restaurant_id: str
    status: str
    total: float
    items: tuple[OrderLineView, ...] = ()
    customer_id: str | None = None
    guest_info: GuestInfo | None = None
    special_instructions: str | None = None
    estimated_ready_time: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "OrderView":
        guest = data.get("guest_info")
        return cls(
            id=str(data.get("id") or data.get("_id")),
            restaurant_id=str(data["restaurant_id"]),
            status=checked_status(data.get("status")),
            total=float(data["total"]),
            items=tuple(
                OrderLineView(
                    name=item["name"],
                    unit_price=float(item["unit_price"]),
                    quantity=int(item["quantity"]),
                    price_point_label=item.get("price_point_label"),
                    menu_item_id=item.get("menu_item_id"),
                )
                for item in data.get("items", [])
            ),
            customer_id=data.get("customer_id"),
            guest_info=GuestInfo(**guest) if guest else None,
            special_instructions=data.get("special_instructions"),
            estimated_ready_time=data.get("estimated_ready_time"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class OrderReceipt:
    """Result of an order creation call.

    ``duplicate`` is True when the backend had already accepted the same
    idempotency token; ``order`` is then the order created the first time.
    """

    order: OrderView
    duplicate: bool = False
    idempotency_token: str | None = field(default=None, compare=False)


class OrderingBackend(ABC):
    """Abstract ordering backend interface."""

    @abstractmethod
    def get_catalog(self, restaurant_id: str) -> Menu:
        """Fetch the restaurant's published menu."""
        ...

    @abstractmethod
    def create_order(self, payload: OrderPayload, idempotency_token: str) -> OrderReceipt:
        """Create an order, or return the one already created for this token."""
        ...

    @abstractmethod
    def get_order(self, order_id: str, identity: Identity | None = None) -> OrderView:
        """Fetch one order visible to ``identity``."""
        ...

    @abstractmethod
    def list_orders_for_user(self, identity: AuthenticatedUser) -> list[OrderView]:
        """Orders placed by the signed-in user, newest first."""
        ...

    @abstractmethod
    def transition_order(self, order_id: str, new_status: str, identity: Identity | None = None) -> OrderView:
        """Request a status change on behalf of the placing customer."""
        ...
