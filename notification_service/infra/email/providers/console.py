"""Development provider: writes the email to the log instead of sending it.

Selected with ``EMAIL_BACKEND=console``.
"""

from __future__ import annotations

import logging
import textwrap
import uuid
from typing import TYPE_CHECKING

from .base import BaseEmailProvider, EmailDeliveryResult

if TYPE_CHECKING:
    from notification_service.infra.email.schemas import EmailMessage

logger = logging.getLogger(__name__)

_BODY_PREVIEW = 500


class ConsoleProvider(BaseEmailProvider):
    @property
    def provider_name(self) -> str:
        return "console"

    async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult:
        message_id = f"console-{uuid.uuid4()}"
        from_email, from_name = self._sender(message)
        sender = f"{from_name} <{from_email}>" if from_name else from_email

        body = textwrap.shorten(message.body_text or "", _BODY_PREVIEW, placeholder=" [...]")
        logger.info(
            f"[console email] {message.subject!r} to {', '.join(message.all_recipients)} from {sender}\n{body}",
            extra={"message_id": message_id, "tags": message.tags},
        )

        return EmailDeliveryResult.success_result(
            message_id=message_id,
            provider=self.provider_name,
            recipients=message.all_recipients,
            metadata={"mode": "console"},
        )

    async def _do_health_check(self) -> bool:
        return True


__all__ = ["ConsoleProvider"]
