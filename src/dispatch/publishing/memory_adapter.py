"""Configurable in-memory publisher for development and testing.

Records every message it accepts and can be told to fail, so tests can
check that a broken sink never affects the order write.
"""

from dispatch.publishing.port import EventPublisher, PublishResult


class InMemoryPublisher(EventPublisher):
    """Configurable in-memory publisher."""

    destination = "memory"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Publisher unavailable"
        self.messages: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Publisher unavailable") -> None:
        """Configure publisher behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def publish(self, message: dict) -> PublishResult:
        message_type = message.get("type")
        if not self.should_succeed:
            return PublishResult(
                success=False,
                message_type=message_type,
                destination=self.destination,
                failure_reason=self.failure_reason,
            )

        self.messages.append(dict(message))
        return PublishResult(success=True, message_type=message_type, destination=self.destination)

    def of_type(self, message_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == message_type]

    def reset(self) -> None:
        self.messages.clear()
        self.should_succeed = True
