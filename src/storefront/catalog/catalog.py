"""Menu snapshot types as delivered by the backend's catalog endpoint.

These are immutable views of data owned by the restaurant operator. A cart
line copies what it needs from a ``CatalogItem`` at add time, so a menu
refresh arriving mid-edit never changes lines already in the cart.
"""

from dataclasses import dataclass, field

from shared.errors import CatalogIntegrityError


@dataclass(frozen=True)
class PricePoint:
    """A named priced variant of a catalog item (size, tier...)."""

    id: str
    label: str
    price: float
    is_default: bool = False

    @classmethod
    def from_payload(cls, data: dict) -> "PricePoint":
        return cls(
            id=str(data.get("id") or data.get("_id")),
            label=data.get("label") or data.get("name") or "",
            price=data["price"],
            is_default=bool(data.get("is_default", data.get("isDefault", False))),
        )


@dataclass(frozen=True)
class CatalogItem:
    """An immutable purchasable thing on a restaurant's menu."""

    id: str
    restaurant_id: str
    name: str
    price: float
    available: bool = True
    price_points: tuple[PricePoint, ...] = ()
    description: str | None = None

    def __post_init__(self):
        defaults = [pp for pp in self.price_points if pp.is_default]
        if len(defaults) > 1:
            raise CatalogIntegrityError(
                {"price_points": [f"Item {self.id} flags {len(defaults)} default price points"]}
            )

    @property
    def default_price_point(self) -> PricePoint | None:
        """The flagged default, or the first entry when none is flagged."""
        if not self.price_points:
            return None
        return next((pp for pp in self.price_points if pp.is_default), self.price_points[0])

    def price_point(self, price_point_id: str) -> PricePoint | None:
        return next((pp for pp in self.price_points if pp.id == str(price_point_id)), None)

    @classmethod
    def from_payload(cls, data: dict, restaurant_id: str) -> "CatalogItem":
        return cls(
            id=str(data.get("id") or data.get("_id")),
            restaurant_id=str(restaurant_id),
            name=data["name"],
            price=data["price"],
            available=bool(data.get("available", True)),
            price_points=tuple(
                PricePoint.from_payload(pp) for pp in (data.get("price_points") or data.get("pricePoints") or [])
            ),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class MenuSection:
    name: str
    items: tuple[CatalogItem, ...] = ()


@dataclass(frozen=True)
class Menu:
    """A restaurant's published menu."""

    restaurant_id: str
    sections: tuple[MenuSection, ...] = field(default_factory=tuple)

    def items(self) -> list[CatalogItem]:
        return [item for section in self.sections for item in section.items]

    def find_item(self, item_id: str) -> CatalogItem | None:
        return next((item for item in self.items() if item.id == str(item_id)), None)

    @classmethod
    def from_payload(cls, data: dict, restaurant_id: str | None = None) -> "Menu":
        """Build a menu from the catalog endpoint's JSON body.

        Accepts both snake_case and the legacy camelCase keys
        (``pricePoints``, ``isDefault``, ``_id``, ``restaurant``).
        """
        restaurant_id = str(restaurant_id or data.get("restaurant_id") or data.get("restaurant"))
        sections = tuple(
            MenuSection(
                name=section.get("name", ""),
                items=tuple(CatalogItem.from_payload(item, restaurant_id) for item in section.get("items", [])),
            )
            for section in data.get("sections", [])
        )
        return cls(restaurant_id=restaurant_id, sections=sections)
