"""Event handler that turns consumed domain events into email notifications.

For every event the handler:

1. creates a ``pending`` notification with the rendered template,
2. sends it through the email channel when there is a recipient,
3. records ``sent`` or ``failed`` on the notification,
4. publishes the matching outcome event.

The result tells the dispatcher what to do with the message. Only transient
store failures ask for redelivery; everything else is acknowledged, because
redelivering would produce the same outcome again.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from notification_service.core.events import CONSUMED_EVENT_TYPES
from notification_service.core.exceptions import (
    ChannelDisabledError,
    EventValidationError,
    InvalidStatusTransitionError,
    NotificationNotFoundError,
    PersistenceError,
    TemplateRenderError,
)
from notification_service.features.notifications.channels import DEFAULT_FAILURE_REASON
from notification_service.features.notifications.models import NotificationChannel, NotificationStatus
from notification_service.infra.messaging import Ack, Drop, Requeue
from notification_service.infra.tracing import add_span_attributes

if TYPE_CHECKING:
    from notification_service.core.events import Event
    from notification_service.features.notifications.channels import DeliveryExecutor
    from notification_service.features.notifications.models import Notification
    from notification_service.features.notifications.outcomes import OutcomePublisher
    from notification_service.features.notifications.service import NotificationService
    from notification_service.infra.messaging import EventContext, EventDispatcher, HandlerResult

logger = logging.getLogger(__name__)

NO_RECIPIENT_REASON = "No email address or email service disabled"


class NotificationEventHandler:
    """Drives one event through create, send, settle and publish.

    Args:
        service: Notification state machine.
        executor: Delivery executor for the email channel.
        publisher: Outcome event publisher.
    """

    def __init__(
        self,
        service: NotificationService,
        executor: DeliveryExecutor,
        publisher: OutcomePublisher,
    ) -> None:
        self._service = service
        self._executor = executor
        self._publisher = publisher

    def register(self, dispatcher: EventDispatcher) -> None:
        """Register ``handle`` for every consumed event type."""
        for event_type in sorted(CONSUMED_EVENT_TYPES, key=lambda et: et.value):
            dispatcher.register_handler(event_type, self.handle)

    async def handle(self, event: Event, ctx: EventContext) -> HandlerResult:
        start = time.perf_counter()
        event_type = event.event_type.value

        try:
            notification_id = await self._service.create_notification(event, NotificationChannel.EMAIL)
            notification = await self._service.get_notification(notification_id)
        except (TemplateRenderError, EventValidationError) as e:
            logger.error(
                "Cannot build notification, dropping event",
                extra={"event_type": event_type, "error": str(e)},
            )
            return Drop(str(e))
        except (PersistenceError, NotificationNotFoundError) as e:
            return Requeue(str(e))

        add_span_attributes({"notification.id": notification_id, "notification.channel": notification.channel})

        status, reason = await self._deliver(notification)

        try:
            notification = await self._service.update_status(notification_id, status, reason)
        except InvalidStatusTransitionError:
            # Another delivery already settled this record and published its outcome
            return Ack()
        except (PersistenceError, NotificationNotFoundError) as e:
            return Requeue(str(e))

        if status is NotificationStatus.SENT:
            await self._publisher.publish_sent(notification, ctx)
        else:
            await self._publisher.publish_failed(notification, ctx, reason or DEFAULT_FAILURE_REASON)

        logger.info(
            "Notification processed",
            extra={
                "notification_id": notification_id,
                "event_type": event_type,
                "status": status.value,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return Ack()

    async def _deliver(self, notification: Notification) -> tuple[NotificationStatus, str | None]:
        recipient = notification.recipient_email
        if not recipient or not self._executor.is_enabled:
            logger.warning(
                "Email notification skipped",
                extra={
                    "notification_id": notification.notification_id,
                    "has_email": bool(recipient),
                    "email_enabled": self._executor.is_enabled,
                },
            )
            return NotificationStatus.FAILED, NO_RECIPIENT_REASON

        try:
            result = await self._executor.send(notification, recipient)
        except ChannelDisabledError as e:
            logger.warning(
                "Email channel unavailable",
                extra={"notification_id": notification.notification_id, "reason": e.reason},
            )
            return NotificationStatus.FAILED, NO_RECIPIENT_REASON

        if result.success:
            return NotificationStatus.SENT, None

        logger.error(
            "Failed to send email notification",
            extra={
                "notification_id": notification.notification_id,
                "error": result.error_message,
                "provider": result.provider,
            },
        )
        return NotificationStatus.FAILED, result.error_message or DEFAULT_FAILURE_REASON


__all__ = ["NO_RECIPIENT_REASON", "NotificationEventHandler"]
