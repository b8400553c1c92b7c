"""FastAPI endpoints for order lifecycle and delivery."""

from fastapi import APIRouter, Depends

from dispatch.api.dependencies import current_principal, get_engine, get_lifecycle
from dispatch.api.schemas import (
    AssignPartnerRequest,
    OrderEnvelope,
    OrderResponse,
    PartnerLocationRequest,
    PartnerResponse,
    PlaceOrderRequest,
    StatusResponse,
    UpdateStatusRequest,
)
from dispatch.assignment.engine import AssignmentEngine
from dispatch.identity import Principal
from dispatch.order.lifecycle import OrderLifecycle

order_router = APIRouter(prefix="/orders", tags=["orders"])
delivery_router = APIRouter(prefix="/delivery", tags=["delivery"])


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderEnvelope)
async def place_order(
    body: PlaceOrderRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderEnvelope:
    order = lifecycle.create(
        principal,
        restaurant_id=body.restaurant_id,
        items=[line.model_dump() for line in body.items],
        delivery_address=body.delivery_address or "",
    )
    return OrderEnvelope(message="Order created", order=OrderResponse.from_order(order))


@order_router.get("/my", response_model=list[OrderResponse])
async def my_orders(
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(o) for o in lifecycle.list_mine(principal)]


@order_router.get("/restaurant/{restaurant_id}", response_model=list[OrderResponse])
async def restaurant_orders(
    restaurant_id: str,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(o) for o in lifecycle.list_for_restaurant(principal, restaurant_id)]


@order_router.put("/{order_id}/status", response_model=OrderEnvelope)
async def update_status(
    order_id: str,
    body: UpdateStatusRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderEnvelope:
    order = lifecycle.transition(principal, order_id, body.status)
    return OrderEnvelope(message="Status updated", order=OrderResponse.from_order(order))


@order_router.put("/{order_id}/assign", response_model=OrderEnvelope)
async def assign_partner(
    order_id: str,
    body: AssignPartnerRequest,
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> OrderEnvelope:
    order = engine.assign(principal, order_id, body.assigned_to)
    return OrderEnvelope(message="Order assigned", order=OrderResponse.from_order(order))


@order_router.put("/{order_id}/cancel", response_model=OrderEnvelope)
async def cancel_order(
    order_id: str,
    principal: Principal = Depends(current_principal),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> OrderEnvelope:
    order = lifecycle.cancel(principal, order_id)
    return OrderEnvelope(message="Order cancelled", order=OrderResponse.from_order(order))


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------
@delivery_router.get("/available", response_model=list[PartnerResponse])
@delivery_router.get("/partners", response_model=list[PartnerResponse])
async def available_partners(
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> list[PartnerResponse]:
    return [PartnerResponse.from_user(p) for p in engine.available_partners()]


@delivery_router.post("/auto-assign/{order_id}", response_model=OrderEnvelope)
async def auto_assign(
    order_id: str,
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> OrderEnvelope:
    order = engine.auto_assign(principal, order_id)
    return OrderEnvelope(message="Order auto-assigned", order=OrderResponse.from_order(order))


@delivery_router.put("/accept/{order_id}", response_model=OrderEnvelope)
async def accept_delivery(
    order_id: str,
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> OrderEnvelope:
    order = engine.accept(principal, order_id)
    return OrderEnvelope(message="Order accepted", order=OrderResponse.from_order(order))


@delivery_router.put("/complete/{order_id}", response_model=OrderEnvelope)
async def complete_delivery(
    order_id: str,
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> OrderEnvelope:
    order = engine.complete(principal, order_id)
    return OrderEnvelope(message="Order completed", order=OrderResponse.from_order(order))


@delivery_router.put("/location", response_model=StatusResponse)
async def update_location(
    body: PartnerLocationRequest,
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> StatusResponse:
    engine.update_location(principal, body.lat, body.lng)
    return StatusResponse()


@delivery_router.get("/orders", response_model=list[OrderResponse])
async def active_orders(
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(o) for o in engine.active_orders(principal)]


@delivery_router.get("/history", response_model=list[OrderResponse])
async def delivery_history(
    principal: Principal = Depends(current_principal),
    engine: AssignmentEngine = Depends(get_engine),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(o) for o in engine.history(principal)]
