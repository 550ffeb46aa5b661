"""Email provider contract.

A provider turns an ``EmailMessage`` into an ``EmailDeliveryResult``. It never
raises for delivery problems: SMTP refusals, timeouts and even unexpected
bugs come back as a failed result so the notification can be recorded as
``failed`` with a readable reason.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings
    from notification_service.infra.email.schemas import EmailMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailDeliveryResult:
    """Outcome of one send.

    ``error_code`` is a short machine-readable category (``AUTH_FAILED``,
    ``CONNECTION_ERROR``, ``RECIPIENTS_REFUSED``, ``SMTP_ERROR``,
    ``UNEXPECTED_ERROR``). A failed result always carries an ``error``.
    """

    success: bool
    message_id: str | None
    provider: str
    recipients_accepted: list[str] = field(default_factory=list)
    recipients_rejected: list[str] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error:
            object.__setattr__(self, "error", "Unknown error")

    @classmethod
    def success_result(
        cls,
        message_id: str,
        provider: str,
        recipients: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EmailDeliveryResult:
        return cls(
            success=True,
            message_id=message_id,
            provider=provider,
            recipients_accepted=list(recipients or []),
            metadata=dict(metadata or {}),
        )

    @classmethod
    def failure_result(
        cls,
        provider: str,
        error: str,
        error_code: str | None = None,
        recipients_rejected: list[str] | None = None,
    ) -> EmailDeliveryResult:
        return cls(
            success=False,
            message_id=None,
            provider=provider,
            recipients_rejected=list(recipients_rejected or []),
            error=error,
            error_code=error_code,
        )


@runtime_checkable
class EmailProvider(Protocol):
    """What the email channel needs from a backend."""

    @property
    def provider_name(self) -> str: ...

    async def send(self, message: EmailMessage) -> EmailDeliveryResult: ...

    async def health_check(self) -> bool: ...


class BaseEmailProvider(ABC):
    """Shared send/health-check plumbing.

    Subclasses implement ``_do_send`` and ``_do_health_check``; this class
    adds the timing, the outcome log line and the exception capture.
    """

    def __init__(self, settings: EmailSettings) -> None:
        self._settings = settings

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @abstractmethod
    async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult: ...

    @abstractmethod
    async def _do_health_check(self) -> bool: ...

    def _sender(self, message: EmailMessage) -> tuple[str, str | None]:
        """Envelope sender, falling back to the configured defaults."""
        address = message.from_email or self._settings.default_from_email
        name = message.from_name or self._settings.default_from_name or None
        return str(address), name

    async def send(self, message: EmailMessage) -> EmailDeliveryResult:
        started = time.perf_counter()
        try:
            result = await self._do_send(message)
        except Exception as e:
            logger.exception(
                "Email provider raised while sending",
                extra={"provider": self.provider_name, "error": str(e)},
            )
            result = EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=str(e) or type(e).__name__,
                error_code="UNEXPECTED_ERROR",
            )

        if result.duration_ms is None:
            result = replace(result, duration_ms=int((time.perf_counter() - started) * 1000))
        self._log_outcome(result)
        return result

    def _log_outcome(self, result: EmailDeliveryResult) -> None:
        if result.success:
            logger.info(
                "Email sent",
                extra={
                    "provider": result.provider,
                    "message_id": result.message_id,
                    "recipients": len(result.recipients_accepted),
                    "duration_ms": result.duration_ms,
                },
            )
            return
        logger.warning(
            "Email not sent",
            extra={
                "provider": result.provider,
                "error": result.error,
                "error_code": result.error_code,
                "duration_ms": result.duration_ms,
            },
        )

    async def health_check(self) -> bool:
        """True when the backend looks usable; never raises."""
        try:
            healthy = await self._do_health_check()
        except Exception as e:
            logger.warning(
                "Email provider health check raised",
                extra={"provider": self.provider_name, "error": str(e)},
            )
            return False
        if not healthy:
            logger.warning("Email provider health check failed", extra={"provider": self.provider_name})
        return healthy


__all__ = [
    "BaseEmailProvider",
    "EmailDeliveryResult",
    "EmailProvider",
]
