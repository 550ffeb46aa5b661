"""Exception hierarchy for the notification service.

Every error raised by the service derives from ``NotificationServiceError`` and
carries a message plus a ``details`` mapping that is rendered by ``__str__`` and
is safe to pass to ``logger.*(extra=...)``.

The event handler maps these onto broker dispositions:

- ``PersistenceError`` / ``NotificationNotFoundError``: transient, requeue
- ``TemplateRenderError`` / ``EventValidationError``: permanent, drop
- ``InvalidStatusTransitionError``: anomaly, the outcome already exists, ack
"""

from __future__ import annotations

from typing import Any


class NotificationServiceError(Exception):
    """Base exception for notification service errors.

    Attributes:
        message: Error description.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class PersistenceError(NotificationServiceError):
    """The notification store is unreachable or a write failed."""


class NotFoundError(NotificationServiceError):
    """Entity not found in the database.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]) -> None:
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class NotificationNotFoundError(NotFoundError):
    """No notification exists with the given notification id."""

    def __init__(self, notification_id: str) -> None:
        self.notification_id = notification_id
        super().__init__("Notification", {"notification_id": notification_id})


class InvalidStatusTransitionError(NotificationServiceError):
    """A status change was requested that the lifecycle does not allow.

    Raised when the record is already terminal (``sent``/``failed``) or when
    the requested target is not a terminal status.
    """

    def __init__(
        self,
        notification_id: str,
        current_status: str | None,
        target_status: str,
    ) -> None:
        self.notification_id = notification_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot transition notification from {current_status!s} to {target_status}",
            details={
                "notification_id": notification_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class ChannelDisabledError(NotificationServiceError):
    """A delivery channel is disabled or not configured."""

    def __init__(self, channel: str, reason: str | None = None) -> None:
        self.channel = channel
        self.reason = reason
        details: dict[str, Any] = {"channel": channel}
        if reason:
            details["reason"] = reason
        super().__init__(f"Channel '{channel}' is disabled", details=details)


class TemplateRenderError(NotificationServiceError):
    """Error raised when template rendering fails."""

    def __init__(
        self,
        message: str,
        template_name: str | None = None,
        missing_vars: list[str] | None = None,
    ) -> None:
        self.template_name = template_name
        self.missing_vars = missing_vars or []
        details: dict[str, Any] = {}
        if template_name:
            details["template"] = template_name
        if self.missing_vars:
            details["missing_vars"] = self.missing_vars
        super().__init__(message, details=details)


class BrokerConnectionError(NotificationServiceError):
    """The message broker could not be reached."""


class EventValidationError(NotificationServiceError):
    """An inbound payload failed structural validation."""


__all__ = [
    "BrokerConnectionError",
    "ChannelDisabledError",
    "EventValidationError",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "NotificationNotFoundError",
    "NotificationServiceError",
    "PersistenceError",
    "TemplateRenderError",
]
