"""Order aggregate (CQRS) — the core of the dispatch domain.

State Machine (driven edges):
    PENDING → ACCEPTED → PREPARING → ASSIGNED → OUT_FOR_DELIVERY → COMPLETED
    PENDING → CANCELLED
    {PENDING, ACCEPTED, PREPARING} → ASSIGNED              (operator assignment)
    {PENDING, ACCEPTED, PREPARING, ASSIGNED} → OUT_FOR_DELIVERY  (partner accepts)

Status changes requested through ``change_status`` are not restricted to the
driven edges: restaurant owners and assigned partners may set any canonical
status. Upstream producers also write PICKED, ON_THE_WAY and DELIVERING, so
those are valid at rest even though nothing here drives them. Anything else
read back from the store surfaces as ``OrderStatus.UNRECOGNIZED``.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from dispatch.domain import dispatch
from dispatch.errors import ConflictError, ForbiddenError
from dispatch.order.events import (
    DeliveryAccepted,
    DeliveryCompleted,
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PartnerAssigned,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
def normalize_status(token) -> str:
    """Wire tokens arrive as ``out-for-delivery`` or ``out_for_delivery``."""
    return str(token or "").strip().lower().replace("-", "_")


class OrderStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ASSIGNED = "assigned"
    PREPARING = "preparing"
    PICKED = "picked"
    ON_THE_WAY = "on_the_way"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERING = "delivering"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, token) -> "OrderStatus":
        try:
            return cls(normalize_status(token))
        except ValueError:
            return cls.UNRECOGNIZED

    @property
    def is_canonical(self) -> bool:
        return self is not OrderStatus.UNRECOGNIZED

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


class AssignmentMethod(Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


_TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

_DRIVEN_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED,
        OrderStatus.ASSIGNED,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.CANCELLED,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.PREPARING,
        OrderStatus.ASSIGNED,
        OrderStatus.OUT_FOR_DELIVERY,
    },
    OrderStatus.PREPARING: {OrderStatus.ASSIGNED, OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.ASSIGNED: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@dispatch.entity(part_of="Order")
class OrderItem:
    """A line item with the menu name and price captured at placement time.

    Later menu edits never reach placed orders.
    """

    menu_item_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@dispatch.aggregate
class Order:
    customer_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    items = HasMany(OrderItem)
    total_price = Float(default=0.0)
    delivery_address = String(max_length=500)
    assigned_to = Identifier()
    status = String(max_length=50, default=OrderStatus.PENDING.value)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id: str,
        restaurant_id: str,
        lines: list[dict],
        delivery_address: str,
    ):
        """Place a new pending order from priced line snapshots.

        ``lines`` holds ``menu_item_id``, ``name``, ``price`` and ``quantity``.
        The total is computed once here and never again.
        """
        if not lines:
            raise ValidationError({"items": ["Order must contain at least one item"]})
        if not delivery_address or not delivery_address.strip():
            raise ValidationError({"delivery_address": ["Delivery address is required"]})

        now = datetime.now(UTC)
        order = cls(
            customer_id=customer_id,
            restaurant_id=restaurant_id,
            delivery_address=delivery_address.strip(),
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(OrderItem(**line))
        order.total_price = sum(item.line_total for item in order.items)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                restaurant_id=str(restaurant_id),
                items=json.dumps(lines),
                total_price=order.total_price,
                delivery_address=order.delivery_address,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus.parse(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.current_status.is_terminal

    def is_assigned_to(self, user_id: str | None) -> bool:
        return bool(self.assigned_to) and user_id is not None and str(self.assigned_to) == str(user_id)

    def follows_driven_graph(self, target: OrderStatus) -> bool:
        return target in _DRIVEN_TRANSITIONS.get(self.current_status, set())

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def change_status(self, target: OrderStatus, changed_by: str | None = None) -> None:
        """Set any canonical status; edges are not checked against the driven graph."""
        if not target.is_canonical:
            raise ValidationError({"status": ["Invalid status"]})

        now = datetime.now(UTC)
        previous = self.status
        self.status = target.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous or "",
                status=target.value,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    def cancel(self, customer_id: str) -> None:
        """Customer cancellation. Only possible until anyone has acted on the order."""
        if str(self.customer_id) != str(customer_id):
            raise ForbiddenError("Not allowed to cancel this order")
        if self.current_status != OrderStatus.PENDING:
            raise ConflictError("Order cannot be cancelled at this stage")

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                restaurant_id=str(self.restaurant_id),
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------
    def assign_partner(self, partner_id: str, method: AssignmentMethod = AssignmentMethod.MANUAL) -> None:
        """Attach a delivery partner and move to ASSIGNED."""
        if self.is_terminal:
            raise ConflictError(f"Order already {self.status}")

        now = datetime.now(UTC)
        previous = str(self.assigned_to) if self.assigned_to else None
        self.assigned_to = partner_id
        self.status = OrderStatus.ASSIGNED.value
        self.updated_at = now
        self.raise_(
            PartnerAssigned(
                order_id=str(self.id),
                partner_id=str(partner_id),
                previous_partner_id=previous,
                method=method.value,
                assigned_at=now,
            )
        )

    def accept_delivery(self, partner_id: str) -> None:
        """Partner self-accept: take the order and go straight to OUT_FOR_DELIVERY."""
        if self.is_terminal:
            raise ConflictError(f"Order already {self.status}")
        if self.assigned_to and not self.is_assigned_to(partner_id):
            raise ConflictError("Order already assigned to another partner")

        now = datetime.now(UTC)
        self.assigned_to = partner_id
        self.status = OrderStatus.OUT_FOR_DELIVERY.value
        self.updated_at = now
        self.raise_(
            DeliveryAccepted(
                order_id=str(self.id),
                partner_id=str(partner_id),
                accepted_at=now,
            )
        )

    def complete_delivery(self, partner_id: str) -> None:
        """Only the partner holding the assignment can complete."""
        if not self.is_assigned_to(partner_id):
            raise ForbiddenError("You are not assigned to this order")
        if self.current_status == OrderStatus.CANCELLED:
            raise ConflictError("Order was cancelled")

        now = datetime.now(UTC)
        self.status = OrderStatus.COMPLETED.value
        self.updated_at = now
        self.raise_(
            DeliveryCompleted(
                order_id=str(self.id),
                partner_id=str(partner_id),
                completed_at=now,
            )
        )


@dispatch.repository(part_of=Order)
class OrderRepository:
    def for_customer(self, customer_id: str) -> list[Order]:
        """The customer's orders, newest first."""
        orders = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def for_restaurant(self, restaurant_id: str) -> list[Order]:
        orders = self._dao.query.filter(restaurant_id=str(restaurant_id)).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def for_partner(self, partner_id: str) -> list[Order]:
        """All orders ever assigned to the partner, most recently updated first."""
        orders = self._dao.query.filter(assigned_to=str(partner_id)).all().items
        return sorted(orders, key=lambda o: o.updated_at, reverse=True)
