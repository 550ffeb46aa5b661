"""Notification state machine: create, render, persist and settle notifications.

A notification is created ``pending`` with its rendered content and moves
exactly once to ``sent`` or ``failed``. Every operation runs in its own
transaction; store failures surface as ``PersistenceError`` so the event
handler can ask the broker for a redelivery.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from notification_service.core.exceptions import (
    InvalidStatusTransitionError,
    NotificationNotFoundError,
    PersistenceError,
)
from notification_service.features.notifications.models import (
    Notification,
    NotificationChannel,
    NotificationStatus,
)
from notification_service.features.notifications.repository import NotificationRepository
from notification_service.features.notifications.templates import NotificationTemplateService
from notification_service.infra.tracing import add_span_event

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notification_service.core.events import BaseEvent

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 1000


class NotificationService:
    """Owns the notification record lifecycle.

    Args:
        session_factory: Factory for database sessions.
        repository: Optional notification repository.
        template_service: Optional template resolver/renderer.

    Example:
        service = NotificationService(get_session_factory())
        notification_id = await service.create_notification(event)
        await service.update_status(notification_id, NotificationStatus.SENT)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: NotificationRepository | None = None,
        template_service: NotificationTemplateService | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository or NotificationRepository()
        self._template_service = template_service or NotificationTemplateService()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "Notification store operation failed",
                extra={"operation": operation, "error": str(e), "error_type": type(e).__name__},
            )
            raise PersistenceError(
                f"Notification store {operation} failed",
                details={"operation": operation, "error": str(e)},
            ) from e

    async def create_notification(
        self,
        event: BaseEvent,
        channel: NotificationChannel | str = NotificationChannel.EMAIL,
    ) -> str:
        """Render the event's template and insert a pending notification.

        Rendering and the insert share one transaction, so a failure leaves no
        record behind.

        Returns:
            The new notification id (UUID string).

        Raises:
            PersistenceError: If the store is unreachable or the insert fails.
            TemplateRenderError: If the resolved template cannot be rendered.
        """
        channel = NotificationChannel(channel)
        event_type = event.event_type.value

        async with self._transaction("create") as session:
            rendered, template = await self._template_service.render(
                session, event_type, channel.value, event.template_context()
            )
            notification = Notification(
                event_type=event_type,
                user_id=event.user_id,
                recipient_email=event.recipient_email,
                recipient_phone=event.user_phone,
                channel=channel.value,
                subject=rendered.subject,
                message=rendered.message,
                status=NotificationStatus.PENDING.value,
                attempts=0,
                event_data=event.event_data(),
                template_id=template.template_id,
            )
            notification = await self._repository.create(session, notification)
            notification_id = notification.notification_id

        add_span_event("notification.created", {"notification.id": notification_id})
        logger.info(
            "Notification created",
            extra={
                "notification_id": notification_id,
                "event_type": event_type,
                "channel": channel.value,
                "template": template.name,
                "default_template": template.is_default,
            },
        )
        return notification_id

    async def get_notification(self, notification_id: str) -> Notification:
        """Fetch a notification by id.

        Raises:
            NotificationNotFoundError: If no notification has this id.
            PersistenceError: If the store is unreachable.
        """
        async with self._transaction("get") as session:
            notification = await self._repository.get_by_notification_id(session, notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    async def update_status(
        self,
        notification_id: str,
        status: NotificationStatus | str,
        reason: str | None = None,
    ) -> Notification:
        """Record the terminal outcome of a pending notification.

        The update only applies while the row is ``pending``; it increments
        ``attempts`` and stamps ``sent_at`` or ``failed_at``. ``reason`` is
        stored as ``error_message`` for ``failed``.

        Raises:
            InvalidStatusTransitionError: If ``status`` is ``pending`` or the
                notification is already terminal.
            NotificationNotFoundError: If no notification has this id.
            PersistenceError: If the store is unreachable.
        """
        target = NotificationStatus(status)
        if not target.is_terminal:
            raise InvalidStatusTransitionError(notification_id, None, target.value)

        async with self._transaction("update_status") as session:
            updated = await self._repository.transition_from_pending(
                session,
                notification_id,
                target,
                error_message=reason if target is NotificationStatus.FAILED else None,
            )
            current = await self._repository.get_by_notification_id(session, notification_id)

        if current is None:
            raise NotificationNotFoundError(notification_id)

        if not updated:
            logger.warning(
                "Rejected status change on terminal notification",
                extra={
                    "notification_id": notification_id,
                    "current_status": current.status,
                    "target_status": target.value,
                },
            )
            raise InvalidStatusTransitionError(notification_id, current.status, target.value)

        add_span_event("notification.status", {"notification.id": notification_id, "status": target.value})
        logger.info(
            "Notification status updated",
            extra={"notification_id": notification_id, "status": target.value, "error_message": reason},
        )
        return current

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        """List a user's notifications newest first.

        ``limit`` is clamped to 1..1000 and ``offset`` to >= 0.
        """
        safe_limit = max(1, min(limit, MAX_LIST_LIMIT))
        safe_offset = max(0, offset)
        async with self._transaction("list") as session:
            return await self._repository.list_for_user(
                session, user_id, limit=safe_limit, offset=safe_offset
            )

    async def get_stats(self, user_id: str | None = None) -> dict[str, int]:
        """Notification counts per status (every status present, zero-filled)."""
        async with self._transaction("stats") as session:
            counts = await self._repository.count_by_status(session, user_id)
        return {status.value: counts.get(status.value, 0) for status in NotificationStatus}


__all__ = ["MAX_LIST_LIMIT", "NotificationService"]
