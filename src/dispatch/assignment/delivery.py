"""Partner-driven delivery steps — commands and handler.

The partner accepts an order (taking it if nobody holds it) and later marks
it completed.
"""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class AcceptDelivery:
    """Partner takes the order and heads out."""

    order_id = Identifier(required=True)
    partner_id = Identifier(required=True)


@dispatch.command(part_of="Order")
class CompleteDelivery:
    """Assigned partner reports the order delivered."""

    order_id = Identifier(required=True)
    partner_id = Identifier(required=True)


@dispatch.command_handler(part_of=Order)
class DeliveryHandler:
    @handle(AcceptDelivery)
    def accept_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.accept_delivery(command.partner_id)
        repo.add(order)
        return order

    @handle(CompleteDelivery)
    def complete_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.complete_delivery(command.partner_id)
        repo.add(order)
        return order
