"""FastStream exchange and queue definitions with DLQ configuration.

Layout (names come from RabbitSettings):

- ``<exchange_name>``: durable topic exchange carrying domain and outcome events
- ``<queue_name>``: durable consumer queue, bound once per handled event type
- ``<queue_name>.dlx`` / ``<queue_name>_dlq``: dead-letter exchange and queue
  collecting deliveries the worker rejects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from faststream.rabbit import ExchangeType, RabbitExchange, RabbitQueue

if TYPE_CHECKING:
    from notification_service.core.settings.rabbit import RabbitSettings


def build_events_exchange(settings: RabbitSettings) -> RabbitExchange:
    """Topic exchange the worker consumes from and publishes outcomes to."""
    return RabbitExchange(
        name=settings.exchange_name,
        type=ExchangeType.TOPIC,
        durable=True,
        auto_delete=False,
    )


def build_dead_letter_exchange(settings: RabbitSettings) -> RabbitExchange:
    return RabbitExchange(
        name=settings.dead_letter_exchange,
        type=ExchangeType.TOPIC,
        durable=True,
        auto_delete=False,
    )


def build_consumer_queue(settings: RabbitSettings, routing_key: str) -> RabbitQueue:
    """Durable consumer queue, dead-lettering to the DLX when enabled.

    Args:
        settings: RabbitMQ settings.
        routing_key: Binding used by the FastStream subscriber itself; further
            event types are bound explicitly at connect time.
    """
    arguments: dict[str, str] = {}
    if settings.dead_letter_enabled:
        arguments = {
            "x-dead-letter-exchange": settings.dead_letter_exchange,
            "x-dead-letter-routing-key": settings.queue_name,
        }

    return RabbitQueue(
        name=settings.queue_name,
        durable=True,
        auto_delete=False,
        routing_key=routing_key,
        arguments=arguments or None,
    )


def build_dead_letter_queue(settings: RabbitSettings) -> RabbitQueue:
    """Queue receiving every message dead-lettered from the consumer queue."""
    return RabbitQueue(
        name=settings.dead_letter_queue,
        durable=True,
        auto_delete=False,
        routing_key=settings.queue_name,
    )


__all__ = [
    "build_consumer_queue",
    "build_dead_letter_exchange",
    "build_dead_letter_queue",
    "build_events_exchange",
]
