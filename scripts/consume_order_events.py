"""Drain the order events queue and log each message.

Reads the JSON messages the dispatch service publishes (order.created,
order.status_updated, order.cancelled and the assignment events) one at a
time. Well-formed messages are acknowledged; malformed ones are rejected
without requeueing so they cannot block the queue.

Prerequisites:
    RabbitMQ reachable at RABBITMQ_URL (default amqp://localhost)

Usage:
    python scripts/consume_order_events.py
    python scripts/consume_order_events.py --queue orders --work-seconds 1
"""

import argparse
import json
import os
import sys
import time

import pika
import structlog

# Add src/ to path so we can import dispatch modules
sys.path.insert(0, "src")


def handle_message(body: bytes) -> dict:
    """Decode one message. Raises ValueError when it is not a JSON object."""
    data = json.loads(body.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Order event must be a JSON object")
    return data


def main():
    parser = argparse.ArgumentParser(description="Consume dispatch order events")
    parser.add_argument("--url", default=os.environ.get("RABBITMQ_URL", "amqp://localhost"))
    parser.add_argument("--queue", default=os.environ.get("ORDERS_QUEUE", "orders"))
    parser.add_argument(
        "--work-seconds",
        type=float,
        default=0.0,
        help="Simulated processing time per message",
    )
    args = parser.parse_args()

    from dispatch.utils.logging import configure_logging

    configure_logging()
    logger = structlog.get_logger("dispatch.consumer")

    connection = pika.BlockingConnection(pika.URLParameters(args.url))
    channel = connection.channel()
    channel.queue_declare(queue=args.queue, durable=True)
    channel.basic_qos(prefetch_count=1)

    def on_message(ch, method, properties, body):
        try:
            data = handle_message(body)
        except (UnicodeDecodeError, ValueError) as exc:
            logger.error("Rejected malformed order event", error=str(exc))
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        logger.info("Processing order event", event_type=data.get("type"), order_id=data.get("orderId"))
        if args.work_seconds:
            time.sleep(args.work_seconds)
        ch.basic_ack(delivery_tag=method.delivery_tag)
        logger.info("Processed order event", event_type=data.get("type"), order_id=data.get("orderId"))

    channel.basic_consume(queue=args.queue, on_message_callback=on_message, auto_ack=False)
    logger.info("Waiting for order events", queue=args.queue)

    try:
        channel.start_consuming()
    except KeyboardInterrupt:
        channel.stop_consuming()
    finally:
        connection.close()


if __name__ == "__main__":
    main()
