"""Order placement — command and handler.

Prices come from the live menu at the moment of placement and are copied onto
the order lines.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from dispatch.catalogue.menu_item import MenuItem
from dispatch.catalogue.restaurant import Restaurant
from dispatch.domain import dispatch
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class PlaceOrder:
    """Place an order against one restaurant's menu."""

    customer_id = Identifier(required=True)
    restaurant_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {"menu_item_id", "quantity"}
    delivery_address = String(max_length=500)


def _requested_lines(raw) -> list[dict]:
    requested = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(requested, list) or not requested:
        raise ValidationError({"items": ["Order must contain at least one item"]})

    lines = []
    for entry in requested:
        if not isinstance(entry, dict) or not entry.get("menu_item_id"):
            raise ValidationError({"items": ["Each item needs a menu_item_id"]})
        quantity = entry.get("quantity", 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError({"items": ["Quantity must be a whole number of at least 1"]})
        lines.append({"menu_item_id": str(entry["menu_item_id"]), "quantity": quantity})
    return lines


@dispatch.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        requested = _requested_lines(command.items)
        restaurant = current_domain.repository_for(Restaurant).get(command.restaurant_id)

        menu = current_domain.repository_for(MenuItem).find_many([line["menu_item_id"] for line in requested])
        lines = []
        for line in requested:
            menu_item = menu.get(line["menu_item_id"])
            if menu_item is None or str(menu_item.restaurant_id) != str(restaurant.id):
                raise ValidationError({"items": [f"Invalid menu item {line['menu_item_id']}"]})
            lines.append(
                {
                    "menu_item_id": line["menu_item_id"],
                    "name": menu_item.name,
                    "price": float(menu_item.price or 0.0),
                    "quantity": line["quantity"],
                }
            )

        order = Order.place(
            customer_id=command.customer_id,
            restaurant_id=str(restaurant.id),
            lines=lines,
            delivery_address=command.delivery_address or "",
        )
        current_domain.repository_for(Order).add(order)
        return order
