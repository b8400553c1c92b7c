"""Partner directory — users as seen by the dispatch context.

A delivery partner is a ``User`` with the ``delivery_partner`` role. The
availability flag is the one piece of partner state dispatch writes: it is
cleared while the partner holds a non-terminal order and set again when that
order completes or is cancelled.

Claiming a partner is a compare-and-set on ``is_available`` done through the
provider's claim primitive. Two concurrent auto-assignments can see the same
candidate, but only one guarded update can flip it. SQL providers enforce this
across processes; the memory provider only serializes claims within one
process.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, String, ValueObject
from protean.utils.query import Q

from dispatch.directory.events import PartnerRelocated
from dispatch.domain import dispatch
from dispatch.identity import Role

_NEVER = datetime.min.replace(tzinfo=UTC)


@dispatch.value_object(part_of="User")
class GeoPoint:
    """A latitude/longitude pair. Defaults to the origin."""

    latitude = Float(default=0.0, min_value=-90.0, max_value=90.0)
    longitude = Float(default=0.0, min_value=-180.0, max_value=180.0)


@dispatch.aggregate
class User:
    name = String(required=True, max_length=200)
    email = String(max_length=254)
    role = String(
        max_length=50,
        choices=Role,
        default=Role.CUSTOMER.value,
    )
    vehicle = String(max_length=100)
    is_available = Boolean(default=False)
    current_location = ValueObject(GeoPoint)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register_partner(cls, name: str, email: str | None = None, vehicle: str | None = None):
        """Create a delivery partner that starts out available."""
        now = datetime.now(UTC)
        return cls(
            name=name,
            email=email,
            role=Role.DELIVERY_PARTNER.value,
            vehicle=vehicle or "",
            is_available=True,
            current_location=GeoPoint(),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_partner(self) -> bool:
        return self.role == Role.DELIVERY_PARTNER.value

    def relocate(self, latitude: float, longitude: float) -> None:
        """Record the partner's resting location."""
        now = datetime.now(UTC)
        self.current_location = GeoPoint(latitude=latitude, longitude=longitude)
        self.updated_at = now
        self.raise_(
            PartnerRelocated(
                partner_id=str(self.id),
                latitude=latitude,
                longitude=longitude,
                relocated_at=now,
            )
        )


@dispatch.repository(part_of=User)
class UserRepository:
    def available_partners(self) -> list[User]:
        """Eligible pool, least recently touched first."""
        partners = self._dao.query.filter(role=Role.DELIVERY_PARTNER.value, is_available=True).all().items
        return sorted(partners, key=lambda p: p.updated_at or _NEVER)

    def claim(self, partner_id: str) -> bool:
        """Flip an available partner to unavailable. False if someone got there first.

        Atomic across processes on SQL providers only. The memory provider
        serializes claims under its in-process lock.
        """
        claimed = self._dao._claim(
            criteria=_claimable() & Q(id=str(partner_id)),
            claim_fields={"is_available": False, "updated_at": datetime.now(UTC)},
            limit=1,
        )
        return len(claimed) == 1

    def claim_next_available(self) -> User | None:
        """Select and claim the least recently touched available partner.

        The candidate read and the flip are one claim: a partner taken by a
        concurrent caller no longer matches and is never returned twice. The
        memory provider serializes claims with its provider lock, so on that
        provider the guarantee holds within one process only; SQL providers
        enforce it in the database.
        """
        claimed = self._dao._claim(
            criteria=_claimable(),
            claim_fields={"is_available": False, "updated_at": datetime.now(UTC)},
            limit=1,
            order_by="updated_at",
        )
        if not claimed:
            return None
        return self.get(claimed[0].id)

    def set_availability(self, partner_id: str, available: bool) -> bool:
        """Unconditionally set a partner's availability flag."""
        updated = self._dao._update_all(
            Q(id=str(partner_id)),
            is_available=available,
            updated_at=datetime.now(UTC),
        )
        return updated == 1


def _claimable() -> Q:
    return Q(role=Role.DELIVERY_PARTNER.value, is_available=True)
