"""Order domain events — immutable facts about order state changes.

All events are past tense and versioned. Line items travel as JSON text, the
same way commands carry them.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from dispatch.domain import dispatch


@dispatch.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order against a restaurant's live menu."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    items = Text(required=True)
    total_price = Float(required=True)
    delivery_address = String(required=True)
    placed_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderStatusChanged:
    """The order status was set by the restaurant owner or the assigned partner."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    changed_by = Identifier()
    changed_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderCancelled:
    """The customer cancelled the order while it was still pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class PartnerAssigned:
    """A delivery partner was assigned by an operator or the auto-assigner."""

    __version__ = 1

    order_id = Identifier(required=True)
    partner_id = Identifier(required=True)
    previous_partner_id = Identifier()
    method = String(required=True)
    assigned_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class DeliveryAccepted:
    """A delivery partner took the order and is heading out."""

    __version__ = 1

    order_id = Identifier(required=True)
    partner_id = Identifier(required=True)
    accepted_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class DeliveryCompleted:
    """The assigned partner delivered the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    partner_id = Identifier(required=True)
    completed_at = DateTime(required=True)
