"""SMTP delivery through aiosmtplib.

``EMAIL_USE_TLS`` upgrades the connection with STARTTLS (usually port 587);
``EMAIL_USE_SSL`` speaks TLS from the first byte (usually 465). Credentials
are sent only when both username and password are configured.
"""

from __future__ import annotations

import logging
from email.message import EmailMessage as MIMEMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import TYPE_CHECKING

import aiosmtplib

from .base import BaseEmailProvider, EmailDeliveryResult

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings
    from notification_service.infra.email.schemas import EmailMessage

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases
_ERROR_CODES: tuple[tuple[type[BaseException], str, str], ...] = (
    (aiosmtplib.SMTPAuthenticationError, "AUTH_FAILED", "SMTP authentication failed"),
    (aiosmtplib.SMTPRecipientsRefused, "RECIPIENTS_REFUSED", "All recipients refused"),
    (aiosmtplib.SMTPConnectError, "CONNECTION_ERROR", "SMTP connection failed"),
    (aiosmtplib.SMTPTimeoutError, "CONNECTION_ERROR", "SMTP connection failed"),
    (aiosmtplib.SMTPException, "SMTP_ERROR", "SMTP error"),
    (OSError, "CONNECTION_ERROR", "SMTP connection failed"),
)

_HEALTH_CHECK_TIMEOUT = 5.0


class SMTPProvider(BaseEmailProvider):
    def __init__(self, settings: EmailSettings) -> None:
        super().__init__(settings)
        logger.info(
            "SMTP provider configured",
            extra={"smtp_url": settings.get_smtp_url(), "use_tls": settings.use_tls, "use_ssl": settings.use_ssl},
        )

    @property
    def provider_name(self) -> str:
        return "smtp"

    def _client(self, timeout: float) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self._settings.smtp_host,
            port=self._settings.smtp_port,
            use_tls=self._settings.use_ssl,
            start_tls=self._settings.use_tls,
            validate_certs=self._settings.validate_certs,
            timeout=timeout,
        )

    async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult:
        mime = self._to_mime(message)
        recipients = message.all_recipients

        try:
            smtp = self._client(self._settings.timeout)
            async with smtp:
                if self._settings.requires_auth:
                    await smtp.login(self._settings.smtp_username, self._settings.smtp_password.get_secret_value())
                refused, _ = await smtp.send_message(mime)
        except (aiosmtplib.SMTPException, OSError) as e:
            return self._failure(e, recipients)

        rejected = list(refused or {})
        accepted = [address for address in recipients if address not in rejected]
        if rejected:
            logger.warning(
                "SMTP server refused some recipients",
                extra={"rejected": rejected, "responses": {k: str(v) for k, v in refused.items()}},
            )
        if not accepted:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error="All recipients refused",
                error_code="RECIPIENTS_REFUSED",
                recipients_rejected=rejected,
            )

        return EmailDeliveryResult(
            success=True,
            message_id=str(mime["Message-ID"]),
            provider=self.provider_name,
            recipients_accepted=accepted,
            recipients_rejected=rejected,
            metadata={"host": self._settings.smtp_host, "port": self._settings.smtp_port},
        )

    def _failure(self, exc: BaseException, recipients: list[str]) -> EmailDeliveryResult:
        for exc_type, code, prefix in _ERROR_CODES:
            if isinstance(exc, exc_type):
                break
        else:
            code, prefix = "UNEXPECTED_ERROR", "SMTP delivery failed"
        rejected = recipients if code in ("AUTH_FAILED", "RECIPIENTS_REFUSED") else []
        return EmailDeliveryResult.failure_result(
            provider=self.provider_name,
            error=f"{prefix}: {exc}",
            error_code=code,
            recipients_rejected=rejected,
        )

    async def _do_health_check(self) -> bool:
        smtp = self._client(_HEALTH_CHECK_TIMEOUT)
        try:
            await smtp.connect()
            await smtp.quit()
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.debug("SMTP server unreachable", extra={"error": str(e)})
            return False
        return True

    def _to_mime(self, message: EmailMessage) -> MIMEMessage:
        from_email, from_name = self._sender(message)

        mime = MIMEMessage()
        mime["From"] = formataddr((from_name, from_email)) if from_name else from_email
        mime["To"] = ", ".join(message.all_recipients)
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid(domain=self._settings.smtp_host)
        mime["Date"] = formatdate(usegmt=True)
        for name, value in message.headers.items():
            mime[name] = value

        mime.set_content(message.body_text or "")
        if message.body_html:
            mime.add_alternative(message.body_html, subtype="html")
        return mime


__all__ = ["SMTPProvider"]
