"""RabbitMQ publisher.

Messages are JSON documents sent to a durable work queue (``orders`` by
default) as persistent deliveries. The connection is opened lazily and
reopened after a failure; publishing is serialized because pika's blocking
connection is not thread-safe.
"""

import json
import os
import threading

import pika
import structlog
from pika.exceptions import AMQPError

from dispatch.publishing.port import EventPublisher, PublishResult

logger = structlog.get_logger(__name__)


class AmqpPublisher(EventPublisher):
    """Publishes order events to a RabbitMQ queue."""

    def __init__(self, url: str | None = None, queue: str | None = None) -> None:
        self.url = url or os.environ.get("RABBITMQ_URL", "amqp://localhost")
        self.queue = queue or os.environ.get("ORDERS_QUEUE", "orders")
        self._connection = None
        self._channel = None
        self._lock = threading.Lock()

    def _connection_parameters(self) -> pika.URLParameters:
        params = pika.URLParameters(self.url)
        params.heartbeat = 30
        params.blocked_connection_timeout = 5
        params.socket_timeout = 5
        return params

    def _ensure_channel(self):
        if self._channel is not None and self._channel.is_open:
            return self._channel

        self._connection = pika.BlockingConnection(self._connection_parameters())
        self._channel = self._connection.channel()
        self._channel.queue_declare(queue=self.queue, durable=True)
        logger.info("RabbitMQ publisher ready", queue=self.queue)
        return self._channel

    def publish(self, message: dict) -> PublishResult:
        message_type = message.get("type")
        body = json.dumps(message, default=str).encode("utf-8")

        with self._lock:
            try:
                channel = self._ensure_channel()
                channel.basic_publish(
                    exchange="",
                    routing_key=self.queue,
                    body=body,
                    properties=pika.BasicProperties(
                        content_type="application/json",
                        delivery_mode=2,
                    ),
                )
            except AMQPError as exc:
                self._reset()
                return PublishResult(
                    success=False,
                    message_type=message_type,
                    destination=self.queue,
                    failure_reason=repr(exc),
                )
            except OSError as exc:
                self._reset()
                return PublishResult(
                    success=False,
                    message_type=message_type,
                    destination=self.queue,
                    failure_reason=str(exc),
                )

        return PublishResult(success=True, message_type=message_type, destination=self.queue)

    def _reset(self) -> None:
        connection, self._connection, self._channel = self._connection, None, None
        if connection is not None and connection.is_open:
            try:
                connection.close()
            except AMQPError as exc:
                logger.warning("Failed to close RabbitMQ connection", error=repr(exc))

    def close(self) -> None:
        with self._lock:
            self._reset()
