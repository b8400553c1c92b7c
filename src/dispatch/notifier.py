"""Side-channel fan-out for the dispatch services.

Every successful order write is followed by room broadcasts and a published
event. Neither may fail the request: the hub and the publisher return result
objects, and the notifier logs the failed ones and moves on.
"""

import structlog

from dispatch.publishing.port import EventPublisher, PublishResult
from dispatch.realtime.hub import BroadcastHub, Emission

logger = structlog.get_logger(__name__)


class Notifier:
    def __init__(self, hub: BroadcastHub, publisher: EventPublisher) -> None:
        self.hub = hub
        self.publisher = publisher

    def broadcast(self, room: str, event: str, payload: dict) -> Emission:
        emission = self.hub.emit(room, event, payload)
        if not emission.ok:
            logger.warning(
                "Broadcast failed",
                room=room,
                client_event=event,
                recipients=emission.recipients,
                error=emission.error,
            )
        return emission

    def publish(self, message: dict) -> PublishResult:
        try:
            result = self.publisher.publish(message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Publisher raised", message_type=message.get("type"))
            return PublishResult(success=False, message_type=message.get("type"), failure_reason=repr(exc))

        if not result.success:
            logger.warning(
                "Event publish failed",
                message_type=result.message_type,
                destination=result.destination,
                reason=result.failure_reason,
            )
        return result


def iso(value) -> str | None:
    """ISO-8601 text for payloads; None stays None."""
    return value.isoformat() if value is not None else None
