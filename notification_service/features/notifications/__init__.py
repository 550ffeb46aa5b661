"""Email notifications driven by domain events.

The feature turns every consumed event into one persisted notification,
delivers it by email and announces the outcome:

Architecture:
    - Models: Notification, NotificationTemplate
    - Templates: built-in defaults, stored overrides, Jinja2 rendering
    - Service: pending → sent | failed state machine
    - Channels: email delivery executor over the configured provider
    - Outcomes: notification.sent / notification.failed CloudEvents
    - Handler: wires the above together for the event dispatcher

Example:
    ```python
    service = NotificationService(get_session_factory())
    handler = NotificationEventHandler(
        service,
        EmailDeliveryExecutor(),
        OutcomePublisher(connection),
    )
    handler.register(dispatcher)
    await dispatcher.start_consuming()
    ```
"""

from notification_service.features.notifications.models import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationTemplate,
)
from notification_service.features.notifications.repository import (
    NotificationRepository,
    NotificationTemplateRepository,
)
from notification_service.features.notifications.templates import (
    NotificationTemplateService,
    TemplateRenderer,
    get_template_renderer,
)
from notification_service.features.notifications.service import NotificationService
from notification_service.features.notifications.channels import (
    DeliveryExecutor,
    DeliveryResult,
    EmailDeliveryExecutor,
)
from notification_service.features.notifications.outcomes import OutcomePublisher
from notification_service.features.notifications.handler import (
    NO_RECIPIENT_REASON,
    NotificationEventHandler,
)

__all__ = [
    "NO_RECIPIENT_REASON",
    "DeliveryExecutor",
    "DeliveryResult",
    "EmailDeliveryExecutor",
    "Notification",
    "NotificationChannel",
    "NotificationEventHandler",
    "NotificationRepository",
    "NotificationService",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationTemplateRepository",
    "NotificationTemplateService",
    "OutcomePublisher",
    "TemplateRenderer",
    "get_template_renderer",
]
