"""Cart aggregate — the customer's in-progress order for one restaurant.

The cart is process-local: it is never saved through a repository. Lines copy
name, unit price and price-point label out of the ``CatalogItem`` at add time,
so later menu refreshes cannot reprice what is already in the cart.

Every mutator validates all of its inputs before touching state. A rejected
call leaves the cart exactly as it was.

Cross-restaurant policy: adding an item from another restaurant is rejected
with ``RestaurantMismatch`` unless the caller passes ``allow_rebind=True``,
in which case the cart is cleared and rebound first.
"""

from datetime import UTC, datetime
from typing import NamedTuple

from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String
from shared.errors import InvalidQuantity, ItemUnavailable, LineNotFound, RestaurantMismatch

from storefront.cart.events import (
    CartCleared,
    CartLineAdded,
    CartLineRemoved,
    CartQuantityUpdated,
    CartRestaurantBound,
)
from storefront.catalog.catalog import CatalogItem
from storefront.catalog.pricing import resolve_price
from storefront.domain import storefront

SNAPSHOT_VERSION = 1


class LineKey(NamedTuple):
    """Merge identity of a cart line."""

    item_id: str
    price_point_id: str | None = None

    def __str__(self):
        return f"{self.item_id}:{self.price_point_id}" if self.price_point_id else self.item_id

    @classmethod
    def coerce(cls, value) -> "LineKey":
        """Accept a LineKey, an (item_id, price_point_id) pair or its string form."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            item_id, _, price_point_id = value.partition(":")
            return cls(item_id, price_point_id or None)
        return cls(*value)


def _validate_quantity(quantity, allow_zero=False):
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity({"quantity": [f"Quantity must be a whole number, got {quantity!r}"]})
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise InvalidQuantity({"quantity": [f"Quantity must be at least {0 if allow_zero else 1}, got {quantity}"]})


@storefront.entity(part_of="Cart")
class CartLine:
    item_id = Identifier(required=True)
    price_point_id = String(max_length=255)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    price_point_label = String(max_length=255)
    quantity = Integer(required=True, min_value=1)

    @property
    def line_key(self) -> LineKey:
        return LineKey(str(self.item_id), self.price_point_id or None)

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self):
        return {
            "item_id": str(self.item_id),
            "price_point_id": self.price_point_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "price_point_label": self.price_point_label,
            "quantity": self.quantity,
        }


@storefront.aggregate
class Cart:
    restaurant_id = Identifier()
    lines = HasMany(CartLine)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, restaurant_id=None):
        now = datetime.now(UTC)
        return cls(restaurant_id=restaurant_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_line(self, line_key) -> CartLine | None:
        key = LineKey.coerce(line_key)
        return next((line for line in self.lines if line.line_key == key), None)

    def total(self) -> float:
        """Sum of unit price × quantity over all lines, computed on every call."""
        return round(sum(line.unit_price * line.quantity for line in self.lines), 2)

    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def is_empty(self) -> bool:
        return not self.lines

    def pull_events(self) -> list:
        events = list(self._events)
        self._events.clear()
        return events

    # -------------------------------------------------------------------
    # Restaurant binding
    # -------------------------------------------------------------------
    def bind_restaurant(self, restaurant_id) -> bool:
        """Bind the cart to ``restaurant_id``.

        Returns True when existing lines had to be dropped because the cart
        was bound to a different restaurant.
        """
        restaurant_id = str(restaurant_id)
        current = str(self.restaurant_id) if self.restaurant_id else None
        if current == restaurant_id:
            return False

        dropped = len(self.lines) if current else 0
        if dropped:
            self._drop_all_lines()

        now = datetime.now(UTC)
        self.restaurant_id = restaurant_id
        self.updated_at = now

        self.raise_(
            CartRestaurantBound(
                cart_id=str(self.id),
                restaurant_id=restaurant_id,
                previous_restaurant_id=current,
                lines_dropped=dropped,
                bound_at=now,
            )
        )
        return dropped > 0

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, item: CatalogItem, quantity=1, price_point_id=None, allow_rebind=False) -> CartLine:
        """Add ``quantity`` of ``item``, merging into a line with the same key."""
        if not item.available:
            raise ItemUnavailable({"item_id": [f"{item.name} is currently unavailable"]})

        restaurant_id = str(item.restaurant_id)
        if self.restaurant_id and str(self.restaurant_id) != restaurant_id and not allow_rebind:
            raise RestaurantMismatch(
                {
                    "restaurant_id": [
                        f"Cart belongs to restaurant {self.restaurant_id}; "
                        f"{item.name} is from restaurant {restaurant_id}"
                    ]
                }
            )

        _validate_quantity(quantity)
        resolved = resolve_price(item, price_point_id)

        key = LineKey(str(item.id), resolved.price_point_id)
        rebinding = not self.restaurant_id or str(self.restaurant_id) != restaurant_id
        line = None if rebinding else self.find_line(key)

        # New lines are validated before the cart is rebound
        new_line = None
        if line is None:
            new_line = CartLine(
                item_id=key.item_id,
                price_point_id=key.price_point_id,
                name=item.name,
                unit_price=resolved.unit_price,
                price_point_label=resolved.label,
                quantity=quantity,
            )

        self.bind_restaurant(restaurant_id)

        if new_line is None:
            line.quantity += quantity
        else:
            line = new_line
            self.add_lines(line)

        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                item_id=key.item_id,
                price_point_id=key.price_point_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity_added=quantity,
                new_quantity=line.quantity,
            )
        )
        return line

    def update_quantity(self, line_key, quantity) -> None:
        """Set a line's quantity; zero removes the line."""
        _validate_quantity(quantity, allow_zero=True)
        line = self._line_or_raise(line_key)

        if quantity == 0:
            self.remove_line(line.line_key)
            return

        previous_quantity = line.quantity
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(line.item_id),
                price_point_id=line.price_point_id,
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_line(self, line_key) -> None:
        line = self._line_or_raise(line_key)
        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineRemoved(
                cart_id=str(self.id),
                item_id=str(line.item_id),
                price_point_id=line.price_point_id,
            )
        )

    def clear(self) -> None:
        """Drop all lines and the restaurant binding."""
        dropped = len(self.lines)
        self._drop_all_lines()
        now = datetime.now(UTC)
        self.restaurant_id = None
        self.updated_at = now

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                lines_dropped=dropped,
                cleared_at=now,
            )
        )

    def _line_or_raise(self, line_key) -> CartLine:
        line = self.find_line(line_key)
        if line is None:
            raise LineNotFound({"line_key": [f"No cart line for {line_key}"]})
        return line

    def _drop_all_lines(self):
        for line in list(self.lines):
            self.remove_lines(line)

    # -------------------------------------------------------------------
    # Snapshots (browser storage)
    # -------------------------------------------------------------------
    def to_snapshot(self) -> dict:
        return {
            "version": SNAPSHOT_VERSION,
            "cart_id": str(self.id),
            "restaurant_id": str(self.restaurant_id) if self.restaurant_id else None,
            "lines": [line.to_dict() for line in self.lines],
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_snapshot(cls, data: dict) -> "Cart":
        if data.get("version") != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported cart snapshot version: {data.get('version')!r}")

        cart = cls(
            id=data["cart_id"],
            restaurant_id=data.get("restaurant_id"),
            created_at=datetime.now(UTC),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else None,
        )
        for line_data in data.get("lines", []):
            _validate_quantity(line_data["quantity"])
            cart.add_lines(CartLine(**line_data))
        return cart
