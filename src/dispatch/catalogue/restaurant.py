"""Restaurant projection — the slice of the catalogue the dispatch context reads.

Restaurants are created and edited by the catalogue service. Dispatch only
needs the owner to authorize status changes, assignments and listings.
"""

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch


@dispatch.aggregate
class Restaurant:
    name = String(required=True, max_length=200)
    address = String(required=True, max_length=500)
    owner_id = Identifier(required=True)
    created_at = DateTime()

    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and str(self.owner_id) == str(user_id)


def owns_restaurant(restaurant_id: str | None, user_id: str | None) -> bool:
    """True when ``user_id`` owns the restaurant. Unknown restaurants are owned by nobody."""
    if not restaurant_id or not user_id:
        return False
    try:
        restaurant = current_domain.repository_for(Restaurant).get(str(restaurant_id))
    except ObjectNotFoundError:
        return False
    return restaurant.is_owned_by(user_id)
