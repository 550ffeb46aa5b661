"""Base protocol and types for delivery channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from notification_service.features.notifications.models import Notification


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a channel delivery attempt.

    Attributes:
        success: Whether delivery succeeded
        error_message: Error description if failed
        provider: Backend that handled the attempt (smtp, console)
        message_id: Provider message id, when delivery succeeded
        response_time_ms: Time taken for delivery in milliseconds
        metadata: Channel-specific metadata
    """

    success: bool
    error_message: str | None = None
    provider: str | None = None
    message_id: str | None = None
    response_time_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class DeliveryExecutor(Protocol):
    """Sends one rendered notification over a single channel.

    Ordinary delivery failures are returned as ``DeliveryResult(success=False)``.
    Misconfiguration raises ``ChannelDisabledError``.
    """

    @property
    def channel(self) -> str: ...

    @property
    def is_enabled(self) -> bool: ...

    async def send(self, notification: Notification, recipient: str) -> DeliveryResult: ...


__all__ = ["DeliveryExecutor", "DeliveryResult"]
