"""Checkout: turn the cart into exactly one server-side order.

Each submission carries an idempotency token derived from a fingerprint of
what is being ordered (restaurant, lines, identity, instructions) plus a
random nonce. The token of the latest unconfirmed submission is remembered
until the backend confirms the order, so a retry after a timeout reuses it
and the backend returns the order it already created instead of creating a
second one. Once
an order succeeds the token is forgotten; ordering the same cart again later
is a new order with a new nonce.

The cart is cleared only after success. Any failure leaves it untouched so
the customer can retry or fix their input.
"""

import hashlib
import json
import threading
from dataclasses import dataclass
from uuid import uuid4

import structlog
from shared.errors import EmptyCart, MissingIdentity, is_recoverable

from storefront.cart.store import CartStore
from storefront.checkout.identity import AuthenticatedUser, GuestInfo, Identity, IdentitySync
from storefront.gateway import get_backend
from storefront.gateway.port import OrderingBackend, OrderLinePayload, OrderPayload, OrderView

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlacedOrder:
    """Outcome of a successful checkout."""

    order: OrderView
    idempotency_token: str
    duplicate: bool = False
    attempts: int = 1


def _checked_identity(identity) -> Identity:
    if isinstance(identity, AuthenticatedUser):
        return identity
    if isinstance(identity, GuestInfo) and identity.is_complete:
        return identity
    raise MissingIdentity({"identity": ["Sign in or provide your name and phone number to place an order"]})


def build_payload(cart_store: CartStore, identity: Identity, special_instructions: str | None = None) -> OrderPayload:
    """Freeze the cart's current lines into an order payload."""
    return payload_from_snapshot(cart_store.snapshot(), identity, special_instructions)


def payload_from_snapshot(snapshot: dict, identity: Identity, special_instructions: str | None = None) -> OrderPayload:
    items = tuple(
        OrderLinePayload(
            menu_item_id=line["item_id"],
            name=line["name"],
            unit_price=line["unit_price"],
            quantity=line["quantity"],
            price_point_id=line["price_point_id"],
            price_point_label=line["price_point_label"],
        )
        for line in snapshot["lines"]
    )
    return OrderPayload(
        restaurant_id=snapshot["restaurant_id"],
        items=items,
        customer=identity if isinstance(identity, AuthenticatedUser) else None,
        guest_info=identity if isinstance(identity, GuestInfo) else None,
        special_instructions=special_instructions or None,
    )


def fingerprint(payload: OrderPayload) -> str:
    identity = payload.identity
    if isinstance(identity, AuthenticatedUser):
        who = {"user_id": identity.user_id}
    else:
        who = identity.to_dict()
    data = {
        "restaurant_id": payload.restaurant_id,
        "items": [item.to_dict() for item in payload.items],
        "identity": who,
        "special_instructions": payload.special_instructions,
    }
    return hashlib.sha256(json.dumps(data, sort_keys=True).encode("utf-8")).hexdigest()


class OrderSubmitter:
    """Submits carts to the ordering backend, at most one order per attempt series."""

    def __init__(self, backend: OrderingBackend | None = None, attempts: int = 1) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self._backend = backend
        self.attempts = attempts
        self._pending_tokens: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def backend(self) -> OrderingBackend:
        return self._backend or get_backend()

    def pending_token(self, payload: OrderPayload) -> str | None:
        """Token an earlier unconfirmed submission of ``payload`` used, if any."""
        with self._lock:
            return self._pending_tokens.get(fingerprint(payload))

    def _token_for(self, key: str) -> str:
        with self._lock:
            token = self._pending_tokens.get(key)
            if token is None:
                token = f"{key[:16]}-{uuid4().hex[:12]}"
            # Only the latest unconfirmed submission keeps its token
            self._pending_tokens = {key: token}
            return token

    def _forget(self, key: str) -> None:
        with self._lock:
            self._pending_tokens.pop(key, None)

    def submit(
        self,
        cart_store: CartStore,
        identity: Identity | None,
        special_instructions: str | None = None,
    ) -> PlacedOrder:
        snapshot = cart_store.snapshot()
        if not snapshot["lines"]:
            raise EmptyCart({"cart": ["Your cart is empty"]})
        identity = _checked_identity(identity)

        payload = payload_from_snapshot(snapshot, identity, special_instructions)
        key = fingerprint(payload)
        token = self._token_for(key)

        attempt = 0
        while True:
            attempt += 1
            try:
                receipt = self.backend.create_order(payload, token)
                break
            except Exception as exc:
                if not is_recoverable(exc) or attempt >= self.attempts:
                    logger.warning(
                        "Order submission failed",
                        idempotency_token=token,
                        attempt=attempt,
                        recoverable=is_recoverable(exc),
                        error=str(exc),
                    )
                    raise
                logger.info("Retrying order submission", idempotency_token=token, attempt=attempt)

        self._forget(key)
        cart_store.clear()

        logger.info(
            "Order placed",
            order_id=receipt.order.id,
            restaurant_id=payload.restaurant_id,
            idempotency_token=token,
            duplicate=receipt.duplicate,
            total=receipt.order.total,
        )
        return PlacedOrder(
            order=receipt.order,
            idempotency_token=token,
            duplicate=receipt.duplicate,
            attempts=attempt,
        )


class CheckoutService:
    """Checkout as the UI sees it: current identity plus the submitter."""

    def __init__(
        self,
        cart_store: CartStore,
        identity_sync: IdentitySync,
        submitter: OrderSubmitter | None = None,
    ) -> None:
        self.cart_store = cart_store
        self.identity_sync = identity_sync
        self.submitter = submitter or OrderSubmitter()

    def place_order(self, guest_info: GuestInfo | None = None, special_instructions: str | None = None) -> PlacedOrder:
        identity = self.identity_sync.resolve(guest_info)
        if isinstance(identity, GuestInfo) and guest_info is not None:
            self.identity_sync.remember_guest(identity)
        return self.submitter.submit(self.cart_store, identity, special_instructions)

    def order_history(self) -> list[OrderView]:
        user = self.identity_sync.current_user()
        if user is None:
            raise MissingIdentity({"identity": ["Sign in to see your order history"]})
        return self.submitter.backend.list_orders_for_user(user)

    def track_order(self, order_id: str, guest_info: GuestInfo | None = None) -> OrderView:
        identity = self.identity_sync.resolve(guest_info)
        return self.submitter.backend.get_order(order_id, identity)

    def cancel_order(self, order_id: str, guest_info: GuestInfo | None = None) -> OrderView:
        identity = self.identity_sync.resolve(guest_info)
        return self.submitter.backend.transition_order(order_id, "cancelled", identity)
