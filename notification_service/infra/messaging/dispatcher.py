"""Event dispatcher: routes broker deliveries to registered handlers.

The dispatcher owns the event-type → handler table and the per-message
pipeline:

1. Decode the JSON body. Malformed payloads are acknowledged and discarded.
2. Normalize and parse the envelope into a typed event.
3. Missing, unknown or unhandled event types are acknowledged with a warning.
4. Invoke the handler with the event and an ``EventContext``.
5. Map the handler's result onto a broker disposition.

Handlers never signal retry by raising. They return ``Ack()``,
``Requeue(reason)`` or ``Drop(reason)``; an exception that escapes anyway is
treated as ``Requeue``. Retry itself is the broker's redelivery, the
dispatcher keeps no counters and applies no backoff.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from opentelemetry.trace import SpanKind

from notification_service.core.events import (
    CONSUMED_EVENT_TYPES,
    Event,
    EventType,
    UnsupportedEvent,
    parse_event,
)
from notification_service.core.exceptions import EventValidationError
from notification_service.infra.logging import clear_log_context, get_lazy_logger, set_log_context
from notification_service.infra.tracing import (
    TraceContext,
    add_span_attributes,
    context_from_trace,
    extract_correlation_id,
    extract_trace_context,
    get_tracer,
    record_exception,
)

from .broker import Disposition, InboundMessage

if TYPE_CHECKING:
    from .broker import BrokerConnection

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


# ──────────────────────────────────────────────────────────────
# Handler results
# ──────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Ack:
    """The event was handled; remove the message."""


@dataclass(frozen=True, slots=True)
class Requeue:
    """A transient failure; the broker should redeliver the message."""

    reason: str


@dataclass(frozen=True, slots=True)
class Drop:
    """A permanent failure; remove the message without redelivery."""

    reason: str


type HandlerResult = Ack | Requeue | Drop


@dataclass(frozen=True, slots=True)
class EventContext:
    """Transport context handed to handlers alongside the event.

    Attributes:
        correlation_id: Inbound correlation id (header, AMQP property or trace id).
        trace_context: Inbound W3C trace context, generated when absent.
        routing_key: Routing key the message arrived with.
        redelivered: True when the broker delivered this message before.
        message_id: AMQP ``message_id`` property.
    """

    correlation_id: str
    trace_context: TraceContext
    routing_key: str | None = None
    redelivered: bool = False
    message_id: str | None = None


type EventHandler = Callable[[Event, EventContext], Awaitable[HandlerResult]]


def to_disposition(result: HandlerResult) -> Disposition:
    """Translate a handler result into the broker action."""
    match result:
        case Ack():
            return Disposition.ACK
        case Requeue():
            return Disposition.REQUEUE
        case Drop():
            return Disposition.DROP
    raise TypeError(f"Handler returned {type(result).__name__}, expected Ack, Requeue or Drop")


# ──────────────────────────────────────────────────────────────
# Dispatcher
# ──────────────────────────────────────────────────────────────


class EventDispatcher:
    """Event-type → handler table bound to a broker connection.

    Args:
        broker: Connection to consume from. Optional so ``dispatch`` can be
            exercised without a broker.

    Example:
        dispatcher = EventDispatcher(connection)
        dispatcher.register_handler(EventType.ORDER_PLACED, handler.handle)
        await dispatcher.start_consuming()
    """

    def __init__(self, broker: BrokerConnection | None = None) -> None:
        self._broker = broker
        self._handlers: dict[EventType, EventHandler] = {}
        self._consuming = False
        self._tracer = get_tracer(__name__)

    @property
    def handlers(self) -> Mapping[EventType, EventHandler]:
        """Read-only view of the registered handlers."""
        return MappingProxyType(self._handlers)

    @property
    def is_consuming(self) -> bool:
        return self._consuming

    def register_handler(self, event_type: EventType | str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event_type``.

        A second registration for the same type replaces the first.

        Raises:
            RuntimeError: If consumption has already started.
            ValueError: If the event type is unknown or is not consumed.
        """
        if self._consuming:
            raise RuntimeError("Cannot register handlers after consumption has started")

        key = EventType(event_type)
        if key not in CONSUMED_EVENT_TYPES:
            raise ValueError(f"Event type '{key.value}' is published by this service, not consumed")

        previous = self._handlers.get(key)
        if previous is not None and previous is not handler:
            logger.warning(
                "Replacing registered event handler",
                extra={
                    "event_type": key.value,
                    "previous_handler": getattr(previous, "__qualname__", repr(previous)),
                    "handler": getattr(handler, "__qualname__", repr(handler)),
                },
            )
        self._handlers[key] = handler
        logger.debug("Registered event handler", extra={"event_type": key.value})

    async def start_consuming(self) -> None:
        """Subscribe to every registered event type and open the connection.

        Raises:
            RuntimeError: If no broker is attached, no handler is registered,
                or consumption already started.
            BrokerConnectionError: If the broker cannot be reached.
        """
        if self._broker is None:
            raise RuntimeError("EventDispatcher has no broker connection")
        if self._consuming:
            raise RuntimeError("EventDispatcher is already consuming")
        if not self._handlers:
            raise RuntimeError("No event handlers registered")

        topics = [event_type.value for event_type in self._handlers]
        self._broker.subscribe(topics, self.dispatch)
        self._consuming = True
        try:
            await self._broker.connect()
        except Exception:
            self._consuming = False
            raise

        logger.info("Consuming events", extra={"topics": sorted(topics)})

    async def dispatch(self, message: InboundMessage) -> Disposition:
        """Run the per-message pipeline and return the broker disposition."""
        trace_context = extract_trace_context(message.headers)
        correlation_id = extract_correlation_id(
            message.headers, trace_context, message.correlation_id
        )
        set_log_context(
            correlation_id=correlation_id,
            trace_id=trace_context.trace_id,
            routing_key=message.routing_key,
        )
        try:
            return await self._dispatch(message, trace_context, correlation_id)
        finally:
            clear_log_context()

    async def _dispatch(
        self,
        message: InboundMessage,
        trace_context: TraceContext,
        correlation_id: str,
    ) -> Disposition:
        payload = self._decode(message)
        if payload is None:
            return Disposition.ACK

        try:
            event = parse_event(payload)
        except EventValidationError as e:
            logger.warning("Discarding invalid event", extra={"error": str(e), **e.details})
            return Disposition.ACK

        if isinstance(event, UnsupportedEvent):
            logger.warning(
                "Discarding unsupported event",
                extra={"event_type": event.event_type, "reason": event.reason},
            )
            return Disposition.ACK

        event_type = event.event_type
        set_log_context(event_type=event_type.value, user_id=event.user_id)

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.warning("No handler registered for event type", extra={"event_type": event_type.value})
            return Disposition.ACK

        context = EventContext(
            correlation_id=correlation_id,
            trace_context=trace_context,
            routing_key=message.routing_key,
            redelivered=message.redelivered,
            message_id=message.message_id,
        )
        lazy_logger.debug(lambda: f"Dispatching {event_type.value}: {event.model_dump_json(by_alias=True)}")

        with self._tracer.start_as_current_span(
            f"message.{event_type.value}",
            context=context_from_trace(trace_context),
            kind=SpanKind.CONSUMER,
        ):
            add_span_attributes(
                {
                    "messaging.system": "rabbitmq",
                    "messaging.operation": "process",
                    "messaging.destination.name": message.routing_key,
                    "messaging.message.id": message.message_id,
                    "messaging.message.conversation_id": correlation_id,
                    "event.type": event_type.value,
                    "user.id": event.user_id,
                }
            )
            try:
                result = await handler(event, context)
                disposition = to_disposition(result)
            except Exception as e:
                record_exception(e)
                logger.exception(
                    "Event handler raised, requeueing",
                    extra={"event_type": event_type.value, "redelivered": message.redelivered},
                )
                return Disposition.REQUEUE

            add_span_attributes({"messaging.disposition": disposition.value})

        if isinstance(result, Requeue | Drop):
            logger.warning(
                "Event not acknowledged",
                extra={
                    "event_type": event_type.value,
                    "disposition": disposition.value,
                    "reason": result.reason,
                    "redelivered": message.redelivered,
                },
            )
        else:
            logger.info("Event handled", extra={"event_type": event_type.value})
        return disposition

    @staticmethod
    def _decode(message: InboundMessage) -> dict | None:
        try:
            payload = json.loads(message.body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                "Discarding malformed message",
                extra={"error": str(e), "routing_key": message.routing_key},
            )
            return None

        if not isinstance(payload, dict):
            logger.warning(
                "Discarding malformed message",
                extra={"error": "payload is not a JSON object", "routing_key": message.routing_key},
            )
            return None
        return payload


__all__ = [
    "Ack",
    "Drop",
    "EventContext",
    "EventDispatcher",
    "EventHandler",
    "HandlerResult",
    "Requeue",
    "to_disposition",
]
