"""Partner resting location — command and handler."""

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from dispatch.directory.user import User
from dispatch.domain import dispatch


@dispatch.command(part_of="User")
class RelocatePartner:
    """Store where an idle partner is waiting."""

    partner_id = Identifier(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)


@dispatch.command_handler(part_of=User)
class RelocatePartnerHandler:
    @handle(RelocatePartner)
    def relocate_partner(self, command):
        repo = current_domain.repository_for(User)
        partner = repo.get(command.partner_id)
        partner.relocate(command.latitude, command.longitude)
        repo.add(partner)
        return partner
