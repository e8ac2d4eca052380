"""Domain events for the Cart aggregate.

The cart lives in the customer's process and is never persisted through a
repository. The ``CartStore`` drains these events after every mutation and
fans them out, together with a fresh snapshot, to its subscribers.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartRestaurantBound:
    """The cart was bound (or rebound) to a restaurant."""

    __version__ = 1

    cart_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    previous_restaurant_id = Identifier()
    lines_dropped = Integer(default=0)
    bound_at = DateTime(required=True)


@storefront.event(part_of="Cart")
class CartLineAdded:
    """A line was appended, or an existing line's quantity increased."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    price_point_id = String(max_length=255)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True)
    quantity_added = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    price_point_id = String(max_length=255)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartLineRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    price_point_id = String(max_length=255)


@storefront.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    lines_dropped = Integer(default=0)
    cleared_at = DateTime(required=True)
