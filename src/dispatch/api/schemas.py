"""Pydantic request/response schemas for the Dispatch API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# --- Request Schemas ---


class OrderLineRequest(BaseModel):
    menu_item_id: str = Field(..., max_length=255)
    quantity: int = 1


class PlaceOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "restaurant_id": "rest-001",
                    "items": [
                        {"menu_item_id": "menu-001", "quantity": 2},
                        {"menu_item_id": "menu-002", "quantity": 1},
                    ],
                    "delivery_address": "221B Baker Street",
                }
            ]
        }
    }

    restaurant_id: str = Field(..., max_length=255)
    items: list[OrderLineRequest]
    delivery_address: str | None = Field(None, max_length=500)


class UpdateStatusRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"status": "out-for-delivery"}]}}

    status: str = Field(..., max_length=50)


class AssignPartnerRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"assigned_to": "partner-001"}]}}

    assigned_to: str | None = Field(None, max_length=255)


class PartnerLocationRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"lat": 12.9716, "lng": 77.5946}]}}

    # Left untyped so non-numeric values reach the domain check
    lat: Any = None
    lng: Any = None


# --- Response Schemas ---


class OrderLineResponse(BaseModel):
    menu_item_id: str
    name: str
    price: float
    quantity: int


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    restaurant_id: str
    items: list[OrderLineResponse]
    total_price: float
    delivery_address: str | None = None
    assigned_to: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> OrderResponse:
        return cls(
            id=str(order.id),
            customer_id=str(order.customer_id),
            restaurant_id=str(order.restaurant_id),
            items=[
                OrderLineResponse(
                    menu_item_id=str(item.menu_item_id),
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity,
                )
                for item in order.items
            ],
            total_price=order.total_price,
            delivery_address=order.delivery_address,
            assigned_to=str(order.assigned_to) if order.assigned_to else None,
            status=order.status,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderEnvelope(BaseModel):
    message: str
    order: OrderResponse


class LocationResponse(BaseModel):
    lat: float
    lng: float


class PartnerResponse(BaseModel):
    id: str
    name: str
    email: str | None = None
    vehicle: str | None = None
    is_available: bool
    current_location: LocationResponse | None = None

    @classmethod
    def from_user(cls, user) -> PartnerResponse:
        location = user.current_location
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            vehicle=user.vehicle,
            is_available=bool(user.is_available),
            current_location=(
                LocationResponse(lat=location.latitude, lng=location.longitude) if location is not None else None
            ),
        )


class StatusResponse(BaseModel):
    status: str = "ok"
