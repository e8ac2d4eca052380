"""Price resolution for catalog items with optional price points."""

import math
from dataclasses import dataclass

from shared.errors import CatalogIntegrityError, InvalidSelection

from storefront.catalog.catalog import CatalogItem


@dataclass(frozen=True)
class ResolvedPrice:
    unit_price: float
    label: str | None = None
    price_point_id: str | None = None


def _checked(item: CatalogItem, price: float, source: str) -> float:
    if isinstance(price, bool) or not isinstance(price, int | float) or not math.isfinite(price) or price < 0:
        raise CatalogIntegrityError({"price": [f"Item {item.id} has an invalid {source} price: {price!r}"]})
    return float(price)


def resolve_price(item: CatalogItem, price_point_id: str | None = None) -> ResolvedPrice:
    """Return the authoritative unit price for ``item``.

    With a ``price_point_id`` the matching price point wins; without one the
    default price point applies, falling back to the base price for items
    that have no price points.
    """
    if price_point_id is not None:
        price_point = item.price_point(price_point_id)
        if price_point is None:
            raise InvalidSelection(
                {"price_point_id": [f"Price point {price_point_id} does not exist on item {item.id}"]}
            )
        return ResolvedPrice(
            unit_price=_checked(item, price_point.price, f"'{price_point.label}'"),
            label=price_point.label,
            price_point_id=price_point.id,
        )

    default = item.default_price_point
    if default is not None:
        return ResolvedPrice(
            unit_price=_checked(item, default.price, f"'{default.label}'"),
            label=default.label,
            price_point_id=default.id,
        )

    return ResolvedPrice(unit_price=_checked(item, item.price, "base"))
