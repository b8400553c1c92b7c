"""Order status updates — command and handler.

Restaurant owners and the assigned partner may set any canonical status.
Moves that leave the driven graph are accepted and logged.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.catalogue.restaurant import owns_restaurant
from dispatch.domain import dispatch
from dispatch.errors import ForbiddenError, ValidationError
from dispatch.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Order")
class UpdateOrderStatus:
    """Set the order's status on behalf of the owner or the assigned partner."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    status = String(required=True, max_length=50)


@dispatch.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not (owns_restaurant(order.restaurant_id, command.actor_id) or order.is_assigned_to(command.actor_id)):
            raise ForbiddenError("Not allowed to update this order")

        target = OrderStatus.parse(command.status)
        if not target.is_canonical:
            raise ValidationError({"status": [f"Invalid status {command.status}"]})

        if not order.follows_driven_graph(target):
            logger.warning(
                "Status change outside the driven graph",
                order_id=str(order.id),
                from_status=order.status,
                to_status=target.value,
                actor_id=str(command.actor_id),
            )

        order.change_status(target, changed_by=command.actor_id)
        repo.add(order)
        return order
