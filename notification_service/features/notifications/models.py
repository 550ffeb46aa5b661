"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import Base, IntegerPKMixin, TimestampMixin


class NotificationStatus(StrEnum):
    """Lifecycle of a notification: ``pending`` then exactly one terminal state."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not NotificationStatus.PENDING


class NotificationChannel(StrEnum):
    """Delivery channel a notification is created for; email is the only one."""

    EMAIL = "email"


class Notification(Base, IntegerPKMixin, TimestampMixin):
    """One rendered notification per handled inbound event.

    ``notification_id``, ``channel`` and the rendered ``subject``/``message``
    are fixed at creation. ``status`` moves from ``pending`` to ``sent`` or
    ``failed`` once; the move is guarded by a conditional update in the
    repository.

    Indexes:
        - notification_id (unique)
        - (user_id, created_at) for per-user listing
        - status for stats
    """

    __tablename__ = "notifications"

    notification_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        unique=True,
        default=lambda: str(uuid4()),
        comment="Public UUID of the notification",
    )
    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Inbound event type (e.g., 'order.placed')",
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Recipient identifier",
    )
    recipient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    recipient_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationChannel.EMAIL.value,
        comment="Delivery channel (email)",
    )

    # Rendered content
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message: Mapped[str] = mapped_column(Text(), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.PENDING.value,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Failure reason, set only when status is 'failed'",
    )

    event_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=True,
        comment="Copy of the inbound event data",
    )
    template_id: Mapped[int | None] = mapped_column(
        Integer(),
        nullable=True,
        comment="notification_templates.id used for rendering (None for built-in defaults)",
    )

    __table_args__ = (Index("ix_notifications_user_id_created_at", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<Notification(notification_id={self.notification_id!r}, "
            f"event_type={self.event_type!r}, status={self.status!r})>"
        )


class NotificationTemplate(Base, IntegerPKMixin, TimestampMixin):
    """Jinja2 template for one (event type, channel) pair."""

    __tablename__ = "notification_templates"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationChannel.EMAIL.value,
    )
    subject_template: Mapped[str | None] = mapped_column(Text(), nullable=True)
    message_template: Mapped[str] = mapped_column(Text(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=True)

    __table_args__ = (UniqueConstraint("event_type", "channel", name="uq_notification_templates_event_type_channel"),)

    def __repr__(self) -> str:
        return f"<NotificationTemplate(name={self.name!r}, event_type={self.event_type!r}, channel={self.channel!r})>"


__all__ = [
    "Notification",
    "NotificationChannel",
    "NotificationStatus",
    "NotificationTemplate",
]
