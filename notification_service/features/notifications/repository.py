"""Repositories for the notifications feature."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, select, update

from notification_service.core.database import BaseRepository
from notification_service.features.notifications.models import (
    Notification,
    NotificationStatus,
    NotificationTemplate,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model.

    The terminal transition is a single conditional UPDATE, so two handler
    chains racing on a redelivered event cannot both record an outcome.
    """

    def __init__(self) -> None:
        super().__init__(Notification)

    async def get_by_notification_id(
        self,
        session: AsyncSession,
        notification_id: str,
    ) -> Notification | None:
        """Get a notification by its public UUID, bypassing the identity map."""
        stmt = (
            select(Notification)
            .where(Notification.notification_id == notification_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition_from_pending(
        self,
        session: AsyncSession,
        notification_id: str,
        status: NotificationStatus,
        error_message: str | None = None,
    ) -> bool:
        """Move a pending notification to a terminal status.

        Increments ``attempts`` and stamps ``sent_at`` or ``failed_at``.

        Returns:
            True if the row was pending and is now terminal, False if no
            pending row matched (unknown id or already terminal).
        """
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "status": status.value,
            "attempts": Notification.attempts + 1,
            "updated_at": now,
        }
        if status is NotificationStatus.SENT:
            values["sent_at"] = now
            values["error_message"] = None
        else:
            values["failed_at"] = now
            values["error_message"] = error_message

        stmt = (
            update(Notification)
            .where(
                and_(
                    Notification.notification_id == notification_id,
                    Notification.status == NotificationStatus.PENDING.value,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        updated = result.rowcount == 1

        self._lazy.debug(
            lambda: f"db.transition({notification_id=}, status={status.value}) -> {'updated' if updated else 'no pending row'}"
        )
        return updated

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        """List a user's notifications, newest first."""
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_for_user({user_id=}, {limit=}, {offset=}) -> {len(items)} items")
        return items

    async def count_by_status(
        self,
        session: AsyncSession,
        user_id: str | None = None,
    ) -> dict[str, int]:
        """Count notifications grouped by status, optionally for one user."""
        stmt = select(Notification.status, func.count(Notification.id)).group_by(Notification.status)
        if user_id is not None:
            stmt = stmt.where(Notification.user_id == user_id)

        result = await session.execute(stmt)
        counts = {status: count for status, count in result.all()}

        self._lazy.debug(lambda: f"db.count_by_status({user_id=}) -> {counts}")
        return counts


class NotificationTemplateRepository(BaseRepository[NotificationTemplate]):
    """Repository for NotificationTemplate model."""

    def __init__(self) -> None:
        super().__init__(NotificationTemplate)

    async def get_active(
        self,
        session: AsyncSession,
        event_type: str,
        channel: str,
    ) -> NotificationTemplate | None:
        """Get the active template for an (event type, channel) pair."""
        stmt = select(NotificationTemplate).where(
            and_(
                NotificationTemplate.event_type == event_type,
                NotificationTemplate.channel == channel,
                NotificationTemplate.is_active.is_(True),
            ),
        )
        result = await session.execute(stmt)
        template = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_template({event_type=}, {channel=}) -> {'found' if template else 'not found'}"
        )
        return template

    async def get_by_key(
        self,
        session: AsyncSession,
        event_type: str,
        channel: str,
    ) -> NotificationTemplate | None:
        """Get the stored template for a pair whether or not it is active."""
        stmt = select(NotificationTemplate).where(
            NotificationTemplate.event_type == event_type,
            NotificationTemplate.channel == channel,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(
        self,
        session: AsyncSession,
        *,
        channel: str | None = None,
        active_only: bool = False,
    ) -> Sequence[NotificationTemplate]:
        """List templates ordered by event type."""
        stmt = select(NotificationTemplate).order_by(NotificationTemplate.event_type)
        if channel is not None:
            stmt = stmt.where(NotificationTemplate.channel == channel)
        if active_only:
            stmt = stmt.where(NotificationTemplate.is_active.is_(True))

        result = await session.execute(stmt)
        return result.scalars().all()

    async def existing_keys(self, session: AsyncSession) -> set[tuple[str, str]]:
        """All stored (event_type, channel) pairs, active or not."""
        result = await session.execute(select(NotificationTemplate.event_type, NotificationTemplate.channel))
        return {(event_type, channel) for event_type, channel in result.all()}


__all__ = ["NotificationRepository", "NotificationTemplateRepository"]
