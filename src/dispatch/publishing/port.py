"""Event publisher port (abstract interface).

Order events leave the service through an at-least-once sink. Publishing is
best-effort: adapters never raise on transport failures, they return a
failed ``PublishResult`` instead and the caller decides what to log.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a publish attempt."""

    success: bool
    message_type: str | None = None
    destination: str | None = None
    failure_reason: str | None = None


class EventPublisher(ABC):
    """Abstract event publisher interface."""

    @abstractmethod
    def publish(self, message: dict) -> PublishResult:
        """Send one message. ``message["type"]`` names the event."""
        ...

    def close(self) -> None:  # noqa: B027
        """Release transport resources. No-op by default."""
