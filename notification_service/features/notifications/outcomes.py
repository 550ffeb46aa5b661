"""Outcome events published after a delivery attempt.

Every notification that reaches a terminal status is announced on the events
exchange as ``notification.sent`` or ``notification.failed``, wrapped in a
CloudEvents 1.0 envelope::

    {
        "specversion": "1.0",
        "type": "notification.sent",
        "source": "notification-service",
        "id": "<notificationId>",
        "time": "2024-05-01T10:00:00.123456+00:00",
        "datacontenttype": "application/json",
        "traceparent": "00-<inbound trace id>-<new span id>-01",
        "correlationid": "<inbound correlation id>",
        "data": {
            "eventType": "notification.sent",
            "userId": "...",
            "userEmail": "...",
            "timestamp": "...",
            "data": {"notificationId": "...", "originalEventType": "order.placed", ...}
        }
    }

Publishing is best effort: the notification record is the source of truth,
so a failed publish is logged and reported as ``False``.
"""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING, Any, Protocol

from notification_service.core.events import EventType
from notification_service.infra.tracing import (
    CORRELATION_ID_HEADER,
    TRACEPARENT_HEADER,
    add_span_event,
    current_trace_context,
)

if TYPE_CHECKING:
    from notification_service.features.notifications.models import Notification
    from notification_service.infra.messaging import EventContext

logger = logging.getLogger(__name__)

CLOUDEVENTS_SPEC_VERSION = "1.0"
CONTENT_TYPE = "application/json"


class OutcomeBroker(Protocol):
    async def publish(
        self,
        topic: str,
        payload: dict[str, Any],
        *,
        correlation_id: str | None = None,
        headers: dict[str, Any] | None = None,
    ) -> None: ...


class OutcomePublisher:
    """Publishes ``notification.sent`` / ``notification.failed`` events.

    Args:
        broker: Connection used for publishing (a ``BrokerConnection``).
        service_name: CloudEvents ``source``; defaults to the app service name.
    """

    def __init__(self, broker: OutcomeBroker, service_name: str | None = None) -> None:
        if service_name is None:
            from notification_service.core.settings import get_app_settings

            service_name = get_app_settings().service_name
        self._broker = broker
        self._service_name = service_name

    async def publish_sent(self, notification: Notification, ctx: EventContext) -> bool:
        """Announce a delivered notification. Returns True when published."""
        return await self._publish(EventType.NOTIFICATION_SENT, notification, ctx)

    async def publish_failed(
        self,
        notification: Notification,
        ctx: EventContext,
        error_message: str,
    ) -> bool:
        """Announce a failed notification. Returns True when published."""
        return await self._publish(
            EventType.NOTIFICATION_FAILED, notification, ctx, error_message=error_message
        )

    def build_envelope(
        self,
        event_type: EventType,
        notification: Notification,
        ctx: EventContext,
        error_message: str | None = None,
    ) -> dict[str, Any]:
        """Build the CloudEvents envelope for ``notification``."""
        now = datetime.now(UTC).isoformat()

        outcome: dict[str, Any] = {
            "notificationId": notification.notification_id,
            "originalEventType": notification.event_type,
            "channel": notification.channel,
            "recipientEmail": notification.recipient_email,
            "subject": notification.subject,
        }
        if error_message is not None:
            outcome["errorMessage"] = error_message
        outcome["attemptNumber"] = 1

        trace_context = current_trace_context(ctx.trace_context)
        return {
            "specversion": CLOUDEVENTS_SPEC_VERSION,
            "type": event_type.value,
            "source": self._service_name,
            "id": notification.notification_id or ctx.correlation_id,
            "time": now,
            "datacontenttype": CONTENT_TYPE,
            "data": {
                "eventType": event_type.value,
                "userId": notification.user_id,
                "userEmail": notification.recipient_email,
                "timestamp": now,
                "data": outcome,
            },
            "traceparent": trace_context.to_traceparent(),
            "correlationid": ctx.correlation_id,
        }

    async def _publish(
        self,
        event_type: EventType,
        notification: Notification,
        ctx: EventContext,
        error_message: str | None = None,
    ) -> bool:
        envelope = self.build_envelope(event_type, notification, ctx, error_message)
        try:
            await self._broker.publish(
                event_type.value,
                envelope,
                correlation_id=ctx.correlation_id,
                headers={
                    TRACEPARENT_HEADER: envelope["traceparent"],
                    CORRELATION_ID_HEADER: ctx.correlation_id,
                },
            )
        except Exception as e:
            logger.exception(
                "Failed to publish outcome event",
                extra={
                    "event_type": event_type.value,
                    "notification_id": notification.notification_id,
                    "error": str(e),
                },
            )
            return False

        add_span_event("notification.outcome_published", {"event.type": event_type.value})
        logger.info(
            "Outcome event published",
            extra={"event_type": event_type.value, "notification_id": notification.notification_id},
        )
        return True


__all__ = ["CLOUDEVENTS_SPEC_VERSION", "OutcomeBroker", "OutcomePublisher"]
