"""FastAPI routes for the Ordering domain — order placement, tracking and the kitchen.

The caller identifies themselves with headers:

- ``X-Actor-Role``: ``staff``, ``customer`` or ``guest``
- ``X-Actor-Id``: user id of a signed-in customer or staff member
- ``X-Restaurant-Id``: the restaurant a staff member works for
- ``X-Guest-Phone`` / ``X-Guest-Email``: a guest's contact details

Order creation and reorder require an ``Idempotency-Key`` header; repeating
a request with the same key returns the original order with status 200
instead of 201.
"""

from datetime import date

from fastapi import APIRouter, Depends, FastAPI, Header, Request, Response
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from shared.errors import InvalidTransition, OrderClosed, RuleViolation, StaleOrderState, Unauthorized

from ordering.api.schemas import (
    CancelRequest,
    DailyOrdersResponse,
    OrderResponse,
    OrderStatsResponse,
    PlaceOrderRequest,
    ReorderRequest,
    TransitionRequest,
)
from ordering.order.order import Actor, ActorRole, Order, OrderStatus
from ordering.order.placement import place_order
from ordering.order.queries import active_orders_for_restaurant, orders_for_customer, visible_order
from ordering.order.reorder import reorder
from ordering.order.transition import transition_order
from ordering.projections.restaurant_order_stats import daily_orders, restaurant_stats


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
async def current_actor(
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
    x_restaurant_id: str | None = Header(default=None),
    x_guest_phone: str | None = Header(default=None),
    x_guest_email: str | None = Header(default=None),
) -> Actor | None:
    if not x_actor_role:
        return None
    return Actor(
        user_id=x_actor_id,
        role=x_actor_role,
        restaurant_id=x_restaurant_id,
        phone=x_guest_phone,
        email=x_guest_email,
    )


def _require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise Unauthorized({"actor": ["Identify yourself with the X-Actor-Role header"]})
    return actor


def _require_customer(actor: Actor | None) -> Actor:
    actor = _require_actor(actor)
    if actor.role != ActorRole.CUSTOMER.value or not actor.user_id:
        raise Unauthorized({"actor": ["Sign in to use this endpoint"]})
    return actor


def _require_staff_of(actor: Actor | None, restaurant_id: str) -> Actor:
    actor = _require_actor(actor)
    if actor.role != ActorRole.STAFF.value or str(actor.restaurant_id) != str(restaurant_id):
        raise Unauthorized({"actor": ["Only staff of this restaurant can see its orders"]})
    return actor


def _order_response(order_id) -> OrderResponse:
    return OrderResponse.from_order(current_domain.repository_for(Order).get(order_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(
    body: PlaceOrderRequest,
    response: Response,
    idempotency_key: str = Header(),
    actor: Actor | None = Depends(current_actor),
) -> OrderResponse:
    customer_id = actor.user_id if actor is not None and actor.role == ActorRole.CUSTOMER.value else None

    result = place_order(
        restaurant_id=body.restaurant_id,
        items=[item.model_dump() for item in body.items],
        idempotency_token=idempotency_key,
        customer_id=customer_id,
        guest_info=body.guest_info.model_dump() if body.guest_info and not customer_id else None,
        special_instructions=body.special_instructions,
    )
    if result["duplicate"]:
        response.status_code = 200
    return _order_response(result["order_id"])


@order_router.get("/history", response_model=list[OrderResponse])
async def order_history(
    actor: Actor | None = Depends(current_actor),
) -> list[OrderResponse]:
    actor = _require_customer(actor)
    return [OrderResponse.from_order(order) for order in orders_for_customer(actor.user_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    actor: Actor | None = Depends(current_actor),
) -> OrderResponse:
    actor = _require_actor(actor)
    return OrderResponse.from_order(visible_order(order_id, actor))


@order_router.patch("/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: str,
    body: TransitionRequest,
    actor: Actor | None = Depends(current_actor),
) -> OrderResponse:
    actor = _require_actor(actor)
    transition_order(
        order_id,
        body.status,
        actor,
        expected_status=body.expected_status,
        reason=body.reason,
        estimated_ready_time=body.estimated_ready_time,
    )
    return _order_response(order_id)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelRequest | None = None,
    actor: Actor | None = Depends(current_actor),
) -> OrderResponse:
    actor = _require_actor(actor)
    body = body or CancelRequest()
    transition_order(
        order_id,
        OrderStatus.CANCELLED.value,
        actor,
        expected_status=body.expected_status,
        reason=body.reason,
    )
    return _order_response(order_id)


@order_router.post("/{order_id}/reorder", status_code=201, response_model=OrderResponse)
async def reorder_order(
    order_id: str,
    response: Response,
    body: ReorderRequest | None = None,
    idempotency_key: str = Header(),
    actor: Actor | None = Depends(current_actor),
) -> OrderResponse:
    actor = _require_customer(actor)
    result = reorder(
        order_id,
        actor.user_id,
        idempotency_key,
        special_instructions=body.special_instructions if body else None,
    )
    if result["duplicate"]:
        response.status_code = 200
    return _order_response(result["order_id"])


# ---------------------------------------------------------------------------
# Restaurant Router (kitchen and dashboard)
# ---------------------------------------------------------------------------
restaurant_router = APIRouter(prefix="/restaurants", tags=["restaurants"])


@restaurant_router.get("/{restaurant_id}/orders/active", response_model=list[OrderResponse])
async def active_orders(
    restaurant_id: str,
    actor: Actor | None = Depends(current_actor),
) -> list[OrderResponse]:
    _require_staff_of(actor, restaurant_id)
    return [OrderResponse.from_order(order) for order in active_orders_for_restaurant(restaurant_id)]


@restaurant_router.get("/{restaurant_id}/orders/stats", response_model=OrderStatsResponse)
async def order_stats(
    restaurant_id: str,
    actor: Actor | None = Depends(current_actor),
) -> OrderStatsResponse:
    _require_staff_of(actor, restaurant_id)
    return OrderStatsResponse(**restaurant_stats(restaurant_id))


@restaurant_router.get("/{restaurant_id}/orders/daily", response_model=list[DailyOrdersResponse])
async def orders_by_day(
    restaurant_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    actor: Actor | None = Depends(current_actor),
) -> list[DailyOrdersResponse]:
    _require_staff_of(actor, restaurant_id)
    return [DailyOrdersResponse(**day) for day in daily_orders(restaurant_id, start_date, end_date)]


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
_STATUS_CODES = {
    Unauthorized: 403,
    InvalidTransition: 409,
    OrderClosed: 409,
    StaleOrderState: 409,
}


async def _rule_violation_handler(request: Request, exc: RuleViolation) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_CODES.get(type(exc), 400),
        content={"error": exc.messages, "code": exc.code},
    )


async def _not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": {"_entity": [str(exc)]}})


def register_order_exception_handlers(app: FastAPI) -> None:
    """Map order rule violations onto 403/409. Call after Protean's handlers."""
    for exc_class in [RuleViolation, *_STATUS_CODES]:
        app.add_exception_handler(exc_class, _rule_violation_handler)
    app.add_exception_handler(ObjectNotFoundError, _not_found_handler)
