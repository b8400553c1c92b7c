"""Event publisher factory.

``EVENT_PUBLISHER`` selects the adapter:
- ``memory`` (default) for development and testing
- ``amqp`` for RabbitMQ
"""

import os

from dispatch.publishing.memory_adapter import InMemoryPublisher
from dispatch.publishing.port import EventPublisher, PublishResult


def build_publisher(kind: str | None = None) -> EventPublisher:
    """Construct the publisher named by ``kind`` or ``EVENT_PUBLISHER``."""
    kind = (kind or os.environ.get("EVENT_PUBLISHER", "memory")).strip().lower()
    if kind == "memory":
        return InMemoryPublisher()
    if kind == "amqp":
        from dispatch.publishing.amqp_adapter import AmqpPublisher

        return AmqpPublisher()
    raise ValueError(f"Unknown event publisher: {kind}")


__all__ = ["EventPublisher", "InMemoryPublisher", "PublishResult", "build_publisher"]
