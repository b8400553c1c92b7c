"""Assignment engine.

Links orders to delivery partners and keeps partner availability in step:
a partner is unavailable while holding a non-terminal order and available
again once it completes or is cancelled.

Automatic assignment claims a partner with a compare-and-set on the
availability flag before touching the order, so two concurrent requests can
never pick the same partner. If the order write then fails the claim is
released.
"""

from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from dispatch.assignment.assignment import AssignPartner
from dispatch.assignment.delivery import AcceptDelivery, CompleteDelivery
from dispatch.directory.relocation import RelocatePartner
from dispatch.directory.user import User
from dispatch.errors import ConflictError, ForbiddenError, ValidationError
from dispatch.identity import Principal, Role
from dispatch.notifier import Notifier, iso
from dispatch.order.lifecycle import hold_partner, release_partner
from dispatch.order.order import AssignmentMethod, Order, OrderStatus
from dispatch.realtime.rooms import order_room, partner_room

logger = structlog.get_logger(__name__)

HISTORY_LIMIT = 200


def _require_partner(principal: Principal) -> None:
    if not principal.is_partner:
        raise ForbiddenError("Delivery partner only")


def _is_number(value) -> bool:
    return not isinstance(value, bool) and isinstance(value, int | float)


class AssignmentEngine:
    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------
    def assign(self, principal: Principal, order_id: str, partner_id: str | None) -> Order:
        """Operator assignment by the restaurant owner or an admin."""
        if not partner_id:
            raise ValidationError({"partner_id": ["assignedTo (userId) required"]})

        previous = current_domain.repository_for(Order).get(order_id).assigned_to
        order = current_domain.process(
            AssignPartner(
                order_id=order_id,
                partner_id=partner_id,
                actor_id=principal.id,
                actor_role=principal.role,
                method=AssignmentMethod.MANUAL.value,
            ),
            asynchronous=False,
        )
        partner_id = str(order.assigned_to)
        hold_partner(partner_id, order_id=order_id)
        if previous and str(previous) != partner_id:
            release_partner(str(previous), order_id=order_id)

        logger.info("Partner assigned", order_id=order_id, partner_id=partner_id, method="manual")
        self._announce_assignment(order, "order.manual_assigned")
        return order

    def auto_assign(self, principal: Principal, order_id: str) -> Order:
        """Give the order to the least recently active available partner."""
        if not principal.has_role(Role.ADMIN, Role.RESTAURANT_OWNER):
            raise ForbiddenError("Only admin or restaurant owner can auto-assign")

        order = current_domain.repository_for(Order).get(order_id)
        if order.is_terminal:
            raise ConflictError(f"Order already {order.status}")
        if order.assigned_to:
            raise ConflictError("Order already assigned")

        users = current_domain.repository_for(User)
        partner = users.claim_next_available()
        if partner is None:
            raise ConflictError("No available delivery partners")
        partner_id = str(partner.id)

        try:
            order = current_domain.process(
                AssignPartner(
                    order_id=order_id,
                    partner_id=partner_id,
                    actor_id=principal.id,
                    actor_role=principal.role,
                    method=AssignmentMethod.AUTOMATIC.value,
                ),
                asynchronous=False,
            )
        except Exception:
            release_partner(partner_id, order_id=order_id)
            raise

        logger.info("Partner assigned", order_id=order_id, partner_id=partner_id, method="automatic")
        self._announce_assignment(order, "order.auto_assigned")
        return order

    def accept(self, principal: Principal, order_id: str) -> Order:
        """Partner takes the order and goes straight out for delivery."""
        _require_partner(principal)
        order = current_domain.process(
            AcceptDelivery(order_id=order_id, partner_id=principal.id),
            asynchronous=False,
        )
        hold_partner(principal.id, order_id=order_id)
        logger.info("Delivery accepted", order_id=order_id, partner_id=principal.id)

        self.notifier.broadcast(
            order_room(order_id),
            "order:update",
            {"orderId": order_id, "status": order.status, "assignedTo": principal.id},
        )
        self.notifier.publish(self._delivery_message("order.accepted", order_id, principal.id))
        return order

    def complete(self, principal: Principal, order_id: str) -> Order:
        """Assigned partner delivers; the partner becomes available again."""
        _require_partner(principal)
        order = current_domain.process(
            CompleteDelivery(order_id=order_id, partner_id=principal.id),
            asynchronous=False,
        )
        release_partner(principal.id, order_id=order_id)
        logger.info("Delivery completed", order_id=order_id, partner_id=principal.id)

        self.notifier.broadcast(order_room(order_id), "order:update", {"orderId": order_id, "status": order.status})
        self.notifier.publish(self._delivery_message("order.completed", order_id, principal.id))
        return order

    # -------------------------------------------------------------------
    # Partner location and views
    # -------------------------------------------------------------------
    def update_location(self, principal: Principal, lat, lng) -> User:
        """Store the partner's resting location and tell the partner room."""
        _require_partner(principal)
        if not (_is_number(lat) and _is_number(lng)):
            raise ValidationError({"location": ["lat and lng numeric required"]})

        partner = current_domain.process(
            RelocatePartner(partner_id=principal.id, latitude=lat, longitude=lng),
            asynchronous=False,
        )
        self.notifier.broadcast(
            partner_room(principal.id),
            "partner:location",
            {"partnerId": principal.id, "lat": lat, "lng": lng, "updatedAt": iso(partner.updated_at)},
        )
        return partner

    def available_partners(self) -> list[User]:
        return current_domain.repository_for(User).available_partners()

    def active_orders(self, principal: Principal) -> list[Order]:
        _require_partner(principal)
        orders = current_domain.repository_for(Order).for_partner(principal.id)
        return [o for o in orders if o.current_status != OrderStatus.COMPLETED]

    def history(self, principal: Principal) -> list[Order]:
        _require_partner(principal)
        orders = current_domain.repository_for(Order).for_partner(principal.id)
        return [o for o in orders if o.current_status == OrderStatus.COMPLETED][:HISTORY_LIMIT]

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _announce_assignment(self, order: Order, message_type: str) -> None:
        order_id = str(order.id)
        partner_id = str(order.assigned_to)
        self.notifier.broadcast(
            order_room(order_id),
            "order:update",
            {
                "orderId": order_id,
                "status": order.status,
                "assignedTo": partner_id,
                "updatedAt": iso(order.updated_at),
            },
        )
        self.notifier.broadcast(
            partner_room(partner_id),
            "order:assigned",
            {
                "orderId": order_id,
                "restaurantId": str(order.restaurant_id),
                "totalPrice": order.total_price,
                "deliveryAddress": order.delivery_address,
            },
        )
        self.notifier.publish(self._delivery_message(message_type, order_id, partner_id))

    @staticmethod
    def _delivery_message(message_type: str, order_id: str, partner_id: str) -> dict:
        return {
            "type": message_type,
            "orderId": order_id,
            "deliveryPartnerId": partner_id,
            "timestamp": datetime.now(UTC).isoformat(),
        }
