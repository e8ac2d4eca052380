"""HTTP ordering backend, talking to the ordering API over ``requests``.

Transport problems (timeouts, refused connections, 5xx) become
``NetworkFailure`` so the submitter may retry with the same idempotency
token. 4xx responses are terminal and map onto the rule violation that the
server reported.
"""

import os

import requests
import structlog
from protean.exceptions import ObjectNotFoundError
from shared.errors import (
    InvalidTransition,
    NetworkFailure,
    OrderClosed,
    ProtocolViolation,
    StaleOrderState,
    Unauthorized,
    ValidationFailure,
)

from storefront.catalog.catalog import Menu
from storefront.checkout.identity import AuthenticatedUser, GuestInfo
from storefront.gateway.port import OrderingBackend, OrderPayload, OrderReceipt, OrderView

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 10.0

_CONFLICTS = {
    "invalid_transition": InvalidTransition,
    "order_closed": OrderClosed,
    "stale_order_state": StaleOrderState,
}


def _actor_headers(identity) -> dict[str, str]:
    if isinstance(identity, AuthenticatedUser):
        return {
            "Authorization": f"Bearer {identity.token}",
            "X-Actor-Id": identity.user_id,
            "X-Actor-Role": "customer",
        }
    if isinstance(identity, GuestInfo):
        headers = {"X-Actor-Role": "guest", "X-Guest-Phone": identity.phone}
        if identity.email:
            headers["X-Guest-Email"] = identity.email
        return headers
    return {}


class HttpBackend(OrderingBackend):
    """Ordering backend reached over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or os.environ.get("STOREFRONT_API_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout or float(os.environ.get("STOREFRONT_API_TIMEOUT", DEFAULT_TIMEOUT))
        self.session = session or requests.Session()

    def get_catalog(self, restaurant_id: str) -> Menu:
        response = self._request("GET", f"/restaurants/{restaurant_id}/menu")
        return Menu.from_payload(self._json(response), restaurant_id=restaurant_id)

    def create_order(self, payload: OrderPayload, idempotency_token: str) -> OrderReceipt:
        headers = {"Idempotency-Key": idempotency_token, **_actor_headers(payload.identity)}
        response = self._request("POST", "/orders", json=payload.to_dict(), headers=headers)
        return OrderReceipt(
            order=OrderView.from_payload(self._json(response)),
            duplicate=response.status_code == 200,
            idempotency_token=idempotency_token,
        )

    def get_order(self, order_id: str, identity=None) -> OrderView:
        response = self._request("GET", f"/orders/{order_id}", headers=_actor_headers(identity))
        return OrderView.from_payload(self._json(response))

    def list_orders_for_user(self, identity: AuthenticatedUser) -> list[OrderView]:
        response = self._request("GET", "/orders/history", headers=_actor_headers(identity))
        return [OrderView.from_payload(order) for order in self._json(response)]

    def transition_order(self, order_id: str, new_status: str, identity=None) -> OrderView:
        if new_status == "cancelled":
            response = self._request("POST", f"/orders/{order_id}/cancel", headers=_actor_headers(identity))
        else:
            response = self._request(
                "PATCH",
                f"/orders/{order_id}/status",
                json={"status": new_status},
                headers=_actor_headers(identity),
            )
        return OrderView.from_payload(self._json(response))

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("Ordering API unreachable", method=method, url=url, error=str(exc))
            raise NetworkFailure(f"{method} {path} failed: {exc}", cause=exc) from exc

        if response.status_code >= 500:
            logger.warning("Ordering API error", method=method, url=url, status=response.status_code)
            raise NetworkFailure(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            self._raise_for_rejection(response)
        return response

    def _raise_for_rejection(self, response: requests.Response):
        try:
            body = response.json()
        except ValueError:
            body = {}
        messages = body.get("error") if isinstance(body, dict) else None
        if not isinstance(messages, dict):
            messages = {"_entity": [str(messages or response.reason)]}

        status = response.status_code
        if status in (401, 403):
            raise Unauthorized(messages)
        if status == 404:
            raise ObjectNotFoundError(messages)
        if status == 409:
            raise _CONFLICTS.get(body.get("code"), InvalidTransition)(messages)
        raise ValidationFailure(messages)

    @staticmethod
    def _json(response: requests.Response):
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolViolation({"body": ["Response is not valid JSON"]}) from exc
