"""RabbitMQ messaging: broker connection, topology and event dispatch.

Usage:
    from notification_service.infra.messaging import BrokerConnection, EventDispatcher

    connection = BrokerConnection(get_rabbit_settings())
    dispatcher = EventDispatcher(connection)
    dispatcher.register_handler("order.placed", handler.handle)
    await dispatcher.start_consuming()
"""

from __future__ import annotations

from .broker import (
    BrokerConnection,
    ConnectionState,
    Disposition,
    InboundMessage,
    MessageCallback,
    create_rabbit_broker,
)
from .dispatcher import (
    Ack,
    Drop,
    EventContext,
    EventDispatcher,
    EventHandler,
    HandlerResult,
    Requeue,
    to_disposition,
)

__all__ = [
    "Ack",
    "BrokerConnection",
    "ConnectionState",
    "Disposition",
    "Drop",
    "EventContext",
    "EventDispatcher",
    "EventHandler",
    "HandlerResult",
    "InboundMessage",
    "MessageCallback",
    "Requeue",
    "create_rabbit_broker",
    "to_disposition",
]
