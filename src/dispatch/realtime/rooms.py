"""Room naming for the broadcast hub."""

ORDER_PREFIX = "order_"
PARTNER_PREFIX = "partner_"
RESTAURANT_PREFIX = "restaurant_"


def order_room(order_id) -> str:
    return f"{ORDER_PREFIX}{order_id}"


def partner_room(partner_id) -> str:
    return f"{PARTNER_PREFIX}{partner_id}"


def restaurant_room(restaurant_id) -> str:
    return f"{RESTAURANT_PREFIX}{restaurant_id}"
