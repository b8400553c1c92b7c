"""Partner assignment — command and handler.

Covers both operator assignment and the automatic path. For automatic
assignment the partner has already been claimed by the engine; the handler
only records it on the order.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.catalogue.restaurant import owns_restaurant
from dispatch.directory.user import User
from dispatch.domain import dispatch
from dispatch.errors import ConflictError, ForbiddenError, ValidationError
from dispatch.identity import Role
from dispatch.order.order import AssignmentMethod, Order


@dispatch.command(part_of="Order")
class AssignPartner:
    """Attach a delivery partner to an order."""

    order_id = Identifier(required=True)
    partner_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    method = String(max_length=20, default=AssignmentMethod.MANUAL.value)


@dispatch.command_handler(part_of=Order)
class AssignPartnerHandler:
    @handle(AssignPartner)
    def assign_partner(self, command):
        method = AssignmentMethod(command.method or AssignmentMethod.MANUAL.value)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if method is AssignmentMethod.MANUAL:
            if command.actor_role != Role.ADMIN.value and not owns_restaurant(order.restaurant_id, command.actor_id):
                raise ForbiddenError("Not allowed to assign this order")
        else:
            if command.actor_role not in (Role.ADMIN.value, Role.RESTAURANT_OWNER.value):
                raise ForbiddenError("Only admins and restaurant owners can auto-assign")
            if order.assigned_to:
                raise ConflictError("Order already assigned")

        partner = current_domain.repository_for(User).get(command.partner_id)
        if not partner.is_partner:
            raise ValidationError({"partner_id": ["User is not a delivery partner"]})

        order.assign_partner(str(partner.id), method)
        repo.add(order)
        return order
