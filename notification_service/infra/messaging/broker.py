"""RabbitMQ broker connection built on FastStream.

``BrokerConnection`` owns the single logical connection the worker uses. It
exposes four primitives:

- ``subscribe(topics, callback)``: register the consumer before connecting
- ``connect()``: open the connection, declare topology, start consuming
- ``publish(topic, payload)``: persistent JSON publish to the events exchange
- ``close()``: stop consuming, drain in-flight handlers, release the connection

Deliveries reach the callback as plain ``InboundMessage`` values. The callback
answers with a ``Disposition`` which is applied explicitly (ack, nack with
requeue, or reject), so FastStream's automatic acknowledgement never decides
the fate of a message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from faststream.rabbit import RabbitBroker
from faststream.rabbit.annotations import RabbitMessage
from faststream.rabbit.opentelemetry import RabbitTelemetryMiddleware

from notification_service.core.exceptions import BrokerConnectionError
from notification_service.core.settings import get_otel_settings
from notification_service.core.settings.otel import OtelSettings
from notification_service.core.settings.rabbit import RabbitSettings

from .exchanges import (
    build_consumer_queue,
    build_dead_letter_exchange,
    build_dead_letter_queue,
    build_events_exchange,
)

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection states for the RabbitMQ broker.

    Attributes:
        DISCONNECTED: Broker is not connected.
        CONNECTING: Broker is attempting to connect.
        CONNECTED: Broker is connected and consuming.
        CLOSING: Broker is draining in-flight deliveries.
        FAILED: The last connection attempt failed.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    FAILED = "failed"


class Disposition(str, Enum):
    """What to do with a delivery once its callback returns."""

    ACK = "ack"
    REQUEUE = "requeue"
    DROP = "drop"


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A raw delivery, detached from the transport.

    Attributes:
        body: Undecoded message body.
        headers: AMQP headers (``traceparent``, ``x-correlation-id``, ...).
        routing_key: Routing key the message was published with.
        correlation_id: AMQP ``correlation_id`` property, if the producer set one.
        message_id: AMQP ``message_id`` property.
        redelivered: True when the broker has delivered this message before.
    """

    body: bytes
    headers: dict[str, Any] = field(default_factory=dict)
    routing_key: str | None = None
    correlation_id: str | None = None
    message_id: str | None = None
    redelivered: bool = False


MessageCallback = Callable[[InboundMessage], Awaitable[Disposition]]


def _raw_body(message: RabbitMessage) -> bytes:
    """Decoder that hands the undecoded body to the subscriber."""
    return message.body


def create_rabbit_broker(settings: RabbitSettings, otel_settings: OtelSettings | None = None) -> RabbitBroker:
    """Create the FastStream broker from settings.

    With tracing enabled, ``RabbitTelemetryMiddleware`` opens a span per delivery
    and publish and carries the W3C context on message headers.
    """
    if otel_settings is None:
        otel_settings = get_otel_settings()

    middlewares = []
    if otel_settings.enabled:
        middlewares.append(RabbitTelemetryMiddleware())
        logger.debug("FastStream RabbitTelemetryMiddleware enabled for distributed tracing")

    return RabbitBroker(
        url=settings.get_url(),
        graceful_timeout=settings.graceful_timeout,
        max_consumers=settings.prefetch_count,
        logger=logger,
        middlewares=middlewares,
    )


class BrokerConnection:
    """Single logical RabbitMQ connection used by the worker.

    Args:
        settings: RabbitMQ settings.
        broker: Optional pre-built FastStream broker (tests inject a mock).

    Example:
        connection = BrokerConnection(get_rabbit_settings())
        connection.subscribe(["order.placed"], dispatcher.dispatch)
        await connection.connect()
        ...
        await connection.close()
    """

    def __init__(self, settings: RabbitSettings, *, broker: RabbitBroker | None = None) -> None:
        self._settings = settings
        self._broker = broker if broker is not None else create_rabbit_broker(settings)
        self._exchange = build_events_exchange(settings)
        self._state = ConnectionState.DISCONNECTED
        self._topics: list[str] = []
        self._callback: MessageCallback | None = None
        self._queue = None
        self._last_error: str | None = None

    # ──────────────────────────────────────────────────────────────
    # State
    # ──────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def topics(self) -> tuple[str, ...]:
        return tuple(self._topics)

    def health(self) -> dict[str, Any]:
        """Snapshot of connection health for logs and the CLI."""
        snapshot: dict[str, Any] = {
            "status": "healthy" if self.is_connected else "unhealthy",
            "state": self._state.value,
            "is_connected": self.is_connected,
            "url": self._settings.safe_url,
            "exchange": self._settings.exchange_name,
            "queue": self._settings.queue_name,
            "topics": list(self._topics),
        }
        if self._last_error:
            snapshot["reason"] = self._last_error
        return snapshot

    # ──────────────────────────────────────────────────────────────
    # Consumption
    # ──────────────────────────────────────────────────────────────

    def subscribe(self, topics: Iterable[str], callback: MessageCallback) -> None:
        """Register the consumer callback for ``topics``.

        Must be called once, before ``connect()``.

        Raises:
            RuntimeError: If already connected or already subscribed.
            ValueError: If no topics are given.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            raise RuntimeError("subscribe() must be called before connect()")
        if self._callback is not None:
            raise RuntimeError("Broker connection already has a subscriber")

        unique_topics = sorted(set(topics))
        if not unique_topics:
            raise ValueError("At least one topic is required")

        self._topics = unique_topics
        self._callback = callback
        self._queue = build_consumer_queue(self._settings, routing_key=unique_topics[0])

        async def handle_delivery(body: bytes, message: RabbitMessage) -> None:
            await self._handle_delivery(message)

        self._broker.subscriber(
            self._queue,
            self._exchange,
            decoder=_raw_body,
        )(handle_delivery)

        logger.info(
            "Subscribed to event topics",
            extra={"queue": self._settings.queue_name, "topics": unique_topics},
        )

    async def _handle_delivery(self, message: RabbitMessage) -> None:
        raw = message.raw_message
        inbound = InboundMessage(
            body=message.body,
            headers=dict(message.headers or {}),
            routing_key=getattr(raw, "routing_key", None),
            correlation_id=getattr(raw, "correlation_id", None),
            message_id=message.message_id,
            redelivered=bool(getattr(raw, "redelivered", False)),
        )

        assert self._callback is not None
        try:
            disposition = await self._callback(inbound)
        except Exception:
            logger.exception(
                "Unhandled error in delivery callback",
                extra={"routing_key": inbound.routing_key, "message_id": inbound.message_id},
            )
            disposition = Disposition.REQUEUE

        await self._settle(message, disposition)

    @staticmethod
    async def _settle(message: RabbitMessage, disposition: Disposition) -> None:
        if disposition is Disposition.ACK:
            await message.ack()
        elif disposition is Disposition.REQUEUE:
            await message.nack(requeue=True)
        else:
            await message.reject()

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the connection, declare topology and start consuming.

        Raises:
            BrokerConnectionError: If RabbitMQ is disabled or unreachable
                within ``connection_timeout``.
        """
        if self.is_connected:
            return
        if not self._settings.is_configured:
            raise BrokerConnectionError("RabbitMQ is not enabled")

        self._state = ConnectionState.CONNECTING
        logger.info(
            "Connecting to RabbitMQ",
            extra={
                "url": self._settings.safe_url,
                "connection_timeout": self._settings.connection_timeout,
            },
        )

        try:
            await asyncio.wait_for(self._open(), timeout=self._settings.connection_timeout)
        except TimeoutError:
            self._fail(f"RabbitMQ connection timeout after {self._settings.connection_timeout}s")
            raise BrokerConnectionError(
                "RabbitMQ connection timeout",
                details={"timeout": self._settings.connection_timeout, "url": self._settings.safe_url},
            ) from None
        except Exception as e:
            self._fail(str(e))
            raise BrokerConnectionError(
                "Failed to connect to RabbitMQ",
                details={"error": str(e), "url": self._settings.safe_url},
            ) from e

        self._state = ConnectionState.CONNECTED
        self._last_error = None
        logger.info("RabbitMQ broker started", extra={"topics": list(self._topics)})

    def _fail(self, reason: str) -> None:
        self._state = ConnectionState.FAILED
        self._last_error = reason
        logger.error("RabbitMQ connection failed", extra={"reason": reason, "url": self._settings.safe_url})

    async def _open(self) -> None:
        await self._broker.connect()
        exchange = await self._broker.declare_exchange(self._exchange)

        if self._queue is not None:
            if self._settings.dead_letter_enabled:
                dlx = await self._broker.declare_exchange(build_dead_letter_exchange(self._settings))
                dlq = await self._broker.declare_queue(build_dead_letter_queue(self._settings))
                await dlq.bind(dlx, routing_key=self._settings.queue_name)

            queue = await self._broker.declare_queue(self._queue)
            for topic in self._topics:
                await queue.bind(exchange, routing_key=topic)

        await self._broker.start()

    async def close(self) -> None:
        """Stop consuming, let in-flight handlers finish, release the connection.

        FastStream bounds the drain by ``graceful_timeout``. Safe to call more
        than once.
        """
        if self._state in (ConnectionState.DISCONNECTED, ConnectionState.CLOSING):
            return

        self._state = ConnectionState.CLOSING
        logger.info(
            "Stopping RabbitMQ broker",
            extra={"graceful_timeout": self._settings.graceful_timeout},
        )
        try:
            await self._broker.close()
        except Exception as e:
            logger.exception("Error stopping RabbitMQ broker", extra={"error": str(e)})
        finally:
            self._state = ConnectionState.DISCONNECTED
        logger.info("RabbitMQ broker stopped")

    # ──────────────────────────────────────────────────────────────
    # Publishing
    # ──────────────────────────────────────────────────────────────

    async def publish(
        self,
        topic: str,
        payload: dict[str, Any],
        *,
        correlation_id: str | None = None,
        headers: dict[str, Any] | None = None,
    ) -> None:
        """Publish a persistent JSON message to the events exchange.

        Args:
            topic: Routing key (the event type).
            payload: JSON-serializable body.
            correlation_id: AMQP ``correlation_id`` property.
            headers: AMQP headers (e.g. ``traceparent``).

        Raises:
            BrokerConnectionError: If the connection is not open.
        """
        if not self.is_connected:
            raise BrokerConnectionError(
                "Cannot publish while disconnected",
                details={"topic": topic, "state": self._state.value},
            )

        await self._broker.publish(
            payload,
            exchange=self._exchange,
            routing_key=topic,
            correlation_id=correlation_id,
            headers=headers or {},
            persist=True,
        )


__all__ = [
    "BrokerConnection",
    "ConnectionState",
    "Disposition",
    "InboundMessage",
    "MessageCallback",
    "create_rabbit_broker",
]
