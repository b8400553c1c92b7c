"""Menu item projection — live prices read at order placement."""

from protean.fields import Boolean, Float, Identifier, String

from dispatch.domain import dispatch


@dispatch.aggregate
class MenuItem:
    restaurant_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    available = Boolean(default=True)


@dispatch.repository(part_of=MenuItem)
class MenuItemRepository:
    def find_many(self, ids: list[str]) -> dict[str, MenuItem]:
        """Return the menu items among ``ids`` that exist, keyed by id."""
        wanted = {str(i) for i in ids}
        if not wanted:
            return {}
        found = self._dao.query.filter(id__in=list(wanted)).all().items
        return {str(item.id): item for item in found}
