"""Order lifecycle service.

Runs the order commands and then fans the outcome out: a broadcast to the
order room (and the restaurant room for cancellations) plus a best-effort
published event. Only the command itself can fail the call.
"""

import json

import structlog
from protean.utils.globals import current_domain

from dispatch.catalogue.restaurant import Restaurant
from dispatch.directory.user import User
from dispatch.errors import ForbiddenError
from dispatch.identity import Principal
from dispatch.notifier import Notifier, iso
from dispatch.order.cancellation import CancelOrder
from dispatch.order.order import Order
from dispatch.order.placement import PlaceOrder
from dispatch.order.status import UpdateOrderStatus
from dispatch.realtime.rooms import order_room, restaurant_room

logger = structlog.get_logger(__name__)


class OrderLifecycle:
    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    def create(self, principal: Principal, restaurant_id: str, items: list[dict], delivery_address: str) -> Order:
        order = current_domain.process(
            PlaceOrder(
                customer_id=principal.id,
                restaurant_id=restaurant_id,
                items=json.dumps(items),
                delivery_address=delivery_address,
            ),
            asynchronous=False,
        )
        order_id = str(order.id)
        logger.info(
            "Order placed",
            order_id=order_id,
            customer_id=principal.id,
            restaurant_id=str(order.restaurant_id),
            total_price=order.total_price,
        )

        self.notifier.publish(
            {
                "type": "order.created",
                "orderId": order_id,
                "customerId": str(order.customer_id),
                "restaurantId": str(order.restaurant_id),
                "totalPrice": order.total_price,
                "createdAt": iso(order.created_at),
            }
        )
        self.notifier.broadcast(order_room(order_id), "order:update", {"orderId": order_id, "status": order.status})
        return order

    def transition(self, principal: Principal, order_id: str, status: str) -> Order:
        """Set the requested status and keep the assignee's availability in step.

        Reaching a terminal status frees the assigned partner. Reopening a
        terminal order puts its partner back on hold.
        """
        was_terminal = current_domain.repository_for(Order).get(order_id).is_terminal
        order = current_domain.process(
            UpdateOrderStatus(order_id=order_id, actor_id=principal.id, status=status),
            asynchronous=False,
        )
        logger.info("Order status updated", order_id=order_id, status=order.status, actor_id=principal.id)

        if order.assigned_to:
            if order.is_terminal:
                release_partner(str(order.assigned_to), order_id=order_id)
            elif was_terminal:
                hold_partner(str(order.assigned_to), order_id=order_id)

        self.notifier.broadcast(
            order_room(order_id),
            "order:update",
            {
                "orderId": order_id,
                "status": order.status,
                "assignedTo": str(order.assigned_to) if order.assigned_to else None,
                "updatedAt": iso(order.updated_at),
            },
        )
        self.notifier.publish(
            {
                "type": "order.status_updated",
                "orderId": order_id,
                "status": order.status,
                "actorId": principal.id,
            }
        )
        return order

    def cancel(self, principal: Principal, order_id: str) -> Order:
        order = current_domain.process(
            CancelOrder(order_id=order_id, customer_id=principal.id),
            asynchronous=False,
        )
        logger.info("Order cancelled", order_id=order_id, customer_id=principal.id)

        if order.assigned_to:
            release_partner(str(order.assigned_to), order_id=order_id)

        payload = {"orderId": order_id, "status": order.status}
        self.notifier.broadcast(order_room(order_id), "order:update", payload)
        self.notifier.broadcast(restaurant_room(order.restaurant_id), "order:updated_by_customer", payload)
        self.notifier.publish({"type": "order.cancelled", "orderId": order_id, "customerId": principal.id})
        return order

    def list_mine(self, principal: Principal) -> list[Order]:
        return current_domain.repository_for(Order).for_customer(principal.id)

    def list_for_restaurant(self, principal: Principal, restaurant_id: str) -> list[Order]:
        restaurant = current_domain.repository_for(Restaurant).get(restaurant_id)
        if not restaurant.is_owned_by(principal.id):
            raise ForbiddenError("Access denied")
        return current_domain.repository_for(Order).for_restaurant(restaurant_id)


def release_partner(partner_id: str, order_id: str | None = None) -> None:
    """Make the partner available again. Failures are logged, never raised."""
    try:
        current_domain.repository_for(User).set_availability(partner_id, True)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to release partner", partner_id=partner_id, order_id=order_id)
        return
    logger.info("Partner released", partner_id=partner_id, order_id=order_id)


def hold_partner(partner_id: str, order_id: str | None = None) -> None:
    """Mark the partner unavailable. Failures are logged, never raised."""
    try:
        current_domain.repository_for(User).set_availability(partner_id, False)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to mark partner unavailable", partner_id=partner_id, order_id=order_id)
