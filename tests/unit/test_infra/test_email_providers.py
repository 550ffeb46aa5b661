"""Tests for email providers and the provider factory."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest
from pydantic import SecretStr

from notification_service.core.exceptions import ChannelDisabledError
from notification_service.core.settings.email import EmailSettings
from notification_service.infra.email import (
    ConsoleProvider,
    EmailMessage,
    SMTPProvider,
    get_email_provider,
)
from notification_service.infra.email.providers.factory import EmailProviderFactory


@pytest.fixture
def message() -> EmailMessage:
    return EmailMessage(
        to=["jane@example.com"],
        subject="Order Confirmation - A-1001",
        body_text="Your order #A-1001 has been placed successfully!",
        body_html="<p>Your order #A-1001 has been placed successfully!</p>",
        tags=["order.placed"],
    )


@pytest.fixture
def smtp_settings() -> EmailSettings:
    return EmailSettings(
        backend="smtp",
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_username="mailer",
        smtp_password=SecretStr("secret"),
        use_tls=True,
    )


@pytest.fixture
def smtp_client() -> MagicMock:
    client = MagicMock()
    client.login = AsyncMock()
    client.send_message = AsyncMock(return_value=({}, "250 OK"))
    return client


@pytest.mark.unit
class TestConsoleProvider:
    async def test_always_succeeds(self, message):
        provider = ConsoleProvider(EmailSettings(backend="console"))

        result = await provider.send(message)

        assert result.success is True
        assert result.provider == "console"
        assert result.message_id.startswith("console-")
        assert result.recipients_accepted == ["jane@example.com"]
        assert result.duration_ms is not None


@pytest.mark.unit
class TestSMTPProvider:
    async def test_send_logs_in_and_sends(self, smtp_settings, smtp_client, message):
        with patch(
            "notification_service.infra.email.providers.smtp.aiosmtplib.SMTP",
            return_value=smtp_client,
        ) as smtp_cls:
            result = await SMTPProvider(smtp_settings).send(message)

        assert result.success is True
        assert result.provider == "smtp"
        assert smtp_cls.call_args.kwargs["start_tls"] is True
        assert smtp_cls.call_args.kwargs["use_tls"] is False
        smtp_client.login.assert_awaited_once_with("mailer", "secret")

        mime = smtp_client.send_message.await_args.args[0]
        assert mime["To"] == "jane@example.com"
        assert mime["Subject"] == "Order Confirmation - A-1001"
        assert mime["Message-ID"] == result.message_id
        assert [part.get_content_type() for part in mime.get_payload()] == ["text/plain", "text/html"]

    async def test_no_login_without_credentials(self, smtp_client, message):
        settings = EmailSettings(backend="smtp", smtp_host="smtp.example.com")

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            result = await SMTPProvider(settings).send(message)

        assert result.success is True
        smtp_client.login.assert_not_awaited()

    async def test_auth_failure_is_returned(self, smtp_settings, smtp_client, message):
        smtp_client.login.side_effect = aiosmtplib.SMTPAuthenticationError(535, "bad credentials")

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            result = await SMTPProvider(smtp_settings).send(message)

        assert result.success is False
        assert result.error_code == "AUTH_FAILED"
        assert result.recipients_rejected == ["jane@example.com"]

    async def test_connection_failure_is_returned(self, smtp_settings, smtp_client, message):
        smtp_client.__aenter__.side_effect = OSError("connection refused")

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            result = await SMTPProvider(smtp_settings).send(message)

        assert result.success is False
        assert result.error_code == "CONNECTION_ERROR"
        assert "connection refused" in result.error

    async def test_all_recipients_rejected_is_failure(self, smtp_settings, smtp_client, message):
        smtp_client.send_message.return_value = ({"jane@example.com": (550, "no such user")}, "OK")

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            result = await SMTPProvider(smtp_settings).send(message)

        assert result.success is False
        assert result.error_code == "RECIPIENTS_REFUSED"

    async def test_unexpected_error_is_captured(self, smtp_settings, smtp_client, message):
        smtp_client.send_message.side_effect = RuntimeError("boom")

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            result = await SMTPProvider(smtp_settings).send(message)

        assert result.success is False
        assert result.error_code == "UNEXPECTED_ERROR"

    async def test_health_check_connects_and_quits(self, smtp_settings, smtp_client):
        smtp_client.connect = AsyncMock()
        smtp_client.quit = AsyncMock()

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            assert await SMTPProvider(smtp_settings).health_check() is True

        smtp_client.quit.assert_awaited_once()

    async def test_health_check_reports_unreachable_server(self, smtp_settings, smtp_client):
        smtp_client.connect = AsyncMock(side_effect=OSError("connection refused"))

        with patch("notification_service.infra.email.providers.smtp.aiosmtplib.SMTP", return_value=smtp_client):
            assert await SMTPProvider(smtp_settings).health_check() is False


@pytest.mark.unit
class TestProviderFactory:
    def test_creates_provider_for_backend(self):
        factory = EmailProviderFactory()

        assert isinstance(factory.create(EmailSettings(backend="console")), ConsoleProvider)
        assert isinstance(factory.create(EmailSettings(backend="smtp")), SMTPProvider)
        assert factory.list_providers() == ["console", "smtp"]

    def test_disabled_raises_channel_disabled(self):
        with pytest.raises(ChannelDisabledError) as exc_info:
            EmailProviderFactory().create(EmailSettings(enabled=False))

        assert exc_info.value.channel == "email"

    def test_default_provider_is_cached(self):
        first = get_email_provider()

        assert isinstance(first, ConsoleProvider)  # EMAIL_BACKEND=console in conftest
        assert get_email_provider() is first
