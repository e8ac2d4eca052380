"""CartStore — the single holder of the customer's cart state.

All reads and mutations go through one re-entrant lock, so concurrent UI
handlers never observe a half-applied change. After each successful mutation
the store drains the cart's events, writes one consistent JSON snapshot to
storage and notifies subscribers with ``(events, snapshot)``.
"""

import json
import threading
from collections.abc import Callable

import structlog
from protean.exceptions import ValidationError

from storefront.cart.cart import Cart, CartLine
from storefront.catalog.catalog import CatalogItem
from storefront.domain import storefront
from storefront.storage import StorageChange, TabStorage

logger = structlog.get_logger(__name__)

CART_STORAGE_KEY = "cart"

Subscriber = Callable[[list, dict], None]


def _load_snapshot(storage: TabStorage) -> Cart | None:
    raw = storage.get(CART_STORAGE_KEY)
    if raw is None:
        return None
    try:
        return Cart.from_snapshot(json.loads(raw))
    except (ValueError, KeyError, TypeError, ValidationError) as exc:
        logger.warning("Discarding unreadable cart snapshot", error=str(exc))
        return None


class CartStore:
    def __init__(self, storage: TabStorage | None = None, cart: Cart | None = None, follow_tabs: bool = False):
        self._lock = threading.RLock()
        self._storage = storage
        self._subscribers: list[Subscriber] = []
        with storefront.domain_context():
            self._cart = cart or Cart.create()
        if storage is not None and follow_tabs:
            storage.subscribe(self._on_storage_change)

    @classmethod
    def restore(cls, storage: TabStorage, follow_tabs: bool = False) -> "CartStore":
        """Rebuild the store from the snapshot saved in ``storage``, if readable."""
        with storefront.domain_context():
            cart = _load_snapshot(storage)
        if cart is None and storage.get(CART_STORAGE_KEY) is not None:
            storage.remove(CART_STORAGE_KEY)
        return cls(storage=storage, cart=cart, follow_tabs=follow_tabs)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def cart_id(self) -> str:
        return str(self._cart.id)

    @property
    def restaurant_id(self) -> str | None:
        with self._lock:
            return str(self._cart.restaurant_id) if self._cart.restaurant_id else None

    def lines(self) -> list[CartLine]:
        with self._lock:
            return list(self._cart.lines)

    def find_line(self, line_key) -> CartLine | None:
        with self._lock:
            return self._cart.find_line(line_key)

    def total(self) -> float:
        with self._lock:
            return self._cart.total()

    def item_count(self) -> int:
        with self._lock:
            return self._cart.item_count()

    def is_empty(self) -> bool:
        with self._lock:
            return self._cart.is_empty()

    def snapshot(self) -> dict:
        with self._lock:
            return self._cart.to_snapshot()

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def bind_restaurant(self, restaurant_id) -> bool:
        """Bind to ``restaurant_id``; True when lines from another restaurant were dropped."""
        return self._mutate(lambda cart: cart.bind_restaurant(restaurant_id))

    def add_item(self, item: CatalogItem, quantity=1, price_point_id=None, allow_rebind=False) -> CartLine:
        return self._mutate(lambda cart: cart.add_item(item, quantity, price_point_id, allow_rebind=allow_rebind))

    def update_quantity(self, line_key, quantity) -> None:
        self._mutate(lambda cart: cart.update_quantity(line_key, quantity))

    def remove_line(self, line_key) -> None:
        self._mutate(lambda cart: cart.remove_line(line_key))

    def clear(self) -> None:
        self._mutate(lambda cart: cart.clear())

    # -------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------
    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe():
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _mutate(self, operation):
        with self._lock, storefront.domain_context():
            try:
                result = operation(self._cart)
            except Exception:
                self._cart.pull_events()
                raise
            events = self._cart.pull_events()
            if not events:
                return result

            snapshot = self._cart.to_snapshot()
            if self._storage is not None:
                self._storage.set_json(CART_STORAGE_KEY, snapshot)

            logger.debug(
                "Cart changed",
                cart_id=snapshot["cart_id"],
                events=[event.__class__.__name__ for event in events],
                line_count=len(snapshot["lines"]),
            )
            for subscriber in list(self._subscribers):
                try:
                    subscriber(events, snapshot)
                except Exception:
                    logger.exception("Cart subscriber failed", cart_id=snapshot["cart_id"])
            return result

    def _on_storage_change(self, change: StorageChange) -> None:
        """Adopt the cart written by another tab."""
        if change.key not in (CART_STORAGE_KEY, None):
            return
        with self._lock, storefront.domain_context():
            cart = _load_snapshot(self._storage)
            self._cart = cart or Cart.create()
        logger.info("Cart reloaded from another tab", tab_id=change.source_tab, cart_id=self.cart_id)
