"""Partner directory events."""

from protean.fields import DateTime, Float, Identifier

from dispatch.domain import dispatch


@dispatch.event(part_of="User")
class PartnerRelocated:
    """A delivery partner reported a new resting location."""

    __version__ = 1

    partner_id = Identifier(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)
    relocated_at = DateTime(required=True)
