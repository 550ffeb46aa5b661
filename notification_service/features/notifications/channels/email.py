"""Email delivery executor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from notification_service.core.exceptions import ChannelDisabledError
from notification_service.features.notifications.channels.base import DeliveryResult
from notification_service.features.notifications.models import NotificationChannel
from notification_service.features.notifications.templates import get_template_renderer
from notification_service.features.notifications.templates.defaults import GENERIC_SUBJECT
from notification_service.infra.email import EmailMessage, get_email_provider
from notification_service.infra.tracing import add_span_attributes

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings
    from notification_service.features.notifications.models import Notification
    from notification_service.features.notifications.templates import TemplateRenderer
    from notification_service.infra.email import EmailProvider

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "Email sending failed"


class EmailDeliveryExecutor:
    """Sends rendered notifications through the configured email provider.

    The plain-text body is the notification's rendered ``message``; an HTML
    alternative is produced by wrapping it in the branded layout.

    Args:
        settings: Email settings (defaults to get_email_settings()).
        provider: Optional provider override (tests inject a fake).
        renderer: Optional template renderer for the HTML layout.
    """

    def __init__(
        self,
        settings: EmailSettings | None = None,
        provider: EmailProvider | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        if settings is None:
            from notification_service.core.settings import get_email_settings

            settings = get_email_settings()
        self._settings = settings
        self._provider = provider
        self._renderer = renderer or get_template_renderer()

    @property
    def channel(self) -> str:
        return NotificationChannel.EMAIL.value

    @property
    def is_enabled(self) -> bool:
        return self._settings.is_configured

    async def health_check(self) -> bool:
        """Check that the provider is reachable; False when the channel is disabled."""
        try:
            provider = self._get_provider()
        except ChannelDisabledError:
            return False
        return await provider.health_check()

    def _get_provider(self) -> EmailProvider:
        if not self._settings.enabled:
            raise ChannelDisabledError(self.channel, reason="EMAIL_ENABLED is false")
        if not self._settings.is_configured:
            raise ChannelDisabledError(self.channel, reason="email provider is not configured")
        if self._provider is None:
            self._provider = get_email_provider(self._settings)
        return self._provider

    async def send(self, notification: Notification, recipient: str) -> DeliveryResult:
        """Send ``notification`` to ``recipient``.

        Returns:
            DeliveryResult; provider failures and invalid addresses come back
            with ``success=False`` and an error message.

        Raises:
            ChannelDisabledError: If email is disabled or not configured.
        """
        provider = self._get_provider()

        subject = notification.subject or GENERIC_SUBJECT
        try:
            message = EmailMessage(
                to=[recipient],
                subject=subject,
                body_text=notification.message,
                body_html=self._renderer.render_email_html(
                    notification.message, notification.event_type, subject
                ),
                headers={"X-Notification-Id": notification.notification_id},
                tags=[notification.event_type],
            )
        except ValidationError as e:
            logger.warning(
                "Invalid email message, not sending",
                extra={"notification_id": notification.notification_id, "error_count": e.error_count()},
            )
            return DeliveryResult(success=False, error_message=f"Invalid recipient address: {recipient}")

        result = await provider.send(message)
        add_span_attributes(
            {
                "email.provider": result.provider,
                "email.success": result.success,
                "email.message_id": result.message_id,
            }
        )

        if result.success:
            return DeliveryResult(
                success=True,
                provider=result.provider,
                message_id=result.message_id,
                response_time_ms=result.duration_ms,
            )
        return DeliveryResult(
            success=False,
            error_message=result.error or DEFAULT_FAILURE_REASON,
            provider=result.provider,
            response_time_ms=result.duration_ms,
            metadata={"error_code": result.error_code} if result.error_code else {},
        )


__all__ = ["DEFAULT_FAILURE_REASON", "EmailDeliveryExecutor"]
