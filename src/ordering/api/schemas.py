"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class OrderItemSchema(BaseModel):
    menu_item_id: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    price_point_id: str | None = None
    price_point_label: str | None = None


class GuestInfoSchema(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str | None = None


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    restaurant_id: str
    items: list[OrderItemSchema] = Field(min_length=1)
    guest_info: GuestInfoSchema | None = None
    special_instructions: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "restaurant_id": "rest-001",
                    "items": [
                        {"menu_item_id": "burger", "name": "Burger", "unit_price": 8.0, "quantity": 2},
                        {
                            "menu_item_id": "fries",
                            "name": "Fries",
                            "unit_price": 3.5,
                            "quantity": 1,
                            "price_point_id": "large",
                            "price_point_label": "Large",
                        },
                    ],
                    "guest_info": {"name": "Ada", "phone": "+1 555 0100"},
                }
            ]
        }
    }


class TransitionRequest(BaseModel):
    status: str
    expected_status: str | None = None
    reason: str | None = Field(default=None, max_length=500)
    estimated_ready_time: datetime | None = None


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    expected_status: str | None = None


class ReorderRequest(BaseModel):
    special_instructions: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    id: str
    restaurant_id: str
    status: str
    total: float
    items: list[OrderItemSchema]
    customer_id: str | None = None
    guest_info: GuestInfoSchema | None = None
    special_instructions: str | None = None
    estimated_ready_time: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        guest = order.guest_info
        return cls(
            id=str(order.id),
            restaurant_id=str(order.restaurant_id),
            status=order.status,
            total=order.total,
            items=[
                OrderItemSchema(
                    menu_item_id=str(item.menu_item_id),
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    price_point_id=item.price_point_id,
                    price_point_label=item.price_point_label,
                )
                for item in order.items
            ],
            customer_id=str(order.customer_id) if order.customer_id else None,
            guest_info=GuestInfoSchema(name=guest.name, phone=guest.phone, email=guest.email) if guest else None,
            special_instructions=order.special_instructions,
            estimated_ready_time=order.estimated_ready_time,
            cancellation_reason=order.cancellation_reason,
            cancelled_by=order.cancelled_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderStatsResponse(BaseModel):
    restaurant_id: str
    total: int
    by_status: dict[str, int]
    revenue: float
    today_total: int
    today_revenue: float


class DailyOrdersResponse(BaseModel):
    date: str
    orders_placed: int
    revenue: float
