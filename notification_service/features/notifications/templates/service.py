"""Service layer for notification template resolution, management and seeding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from notification_service.core.exceptions import NotFoundError
from notification_service.features.notifications.models import NotificationTemplate
from notification_service.features.notifications.repository import NotificationTemplateRepository
from notification_service.features.notifications.templates.defaults import (
    DEFAULT_TEMPLATES,
    get_default_template,
)
from notification_service.features.notifications.templates.renderer import (
    RenderedContent,
    TemplateRenderer,
    get_template_renderer,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedTemplate:
    """Template chosen for an event: a stored row or a built-in default.

    Attributes:
        name: Template name.
        subject_template: Jinja2 subject, if any.
        message_template: Jinja2 body.
        template_id: ``notification_templates.id``; None for built-in defaults.
    """

    name: str
    subject_template: str | None
    message_template: str
    template_id: int | None = None

    @property
    def is_default(self) -> bool:
        return self.template_id is None


class NotificationTemplateService:
    """Resolves and renders templates for (event type, channel) pairs.

    Resolution order:
    1. Active row in ``notification_templates``
    2. Built-in default for the event type
    3. Generic "You have a new notification" template
    """

    def __init__(
        self,
        repository: NotificationTemplateRepository | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self._repository = repository or NotificationTemplateRepository()
        self._renderer = renderer or get_template_renderer()
        self._lazy = get_lazy_logger(__name__)

    async def resolve(self, session: AsyncSession, event_type: str, channel: str) -> ResolvedTemplate:
        """Pick the template for ``event_type`` on ``channel``."""
        stored = await self._repository.get_active(session, event_type, channel)
        if stored is not None:
            self._lazy.debug(lambda: f"Resolved stored template {stored.name} for {event_type}/{channel}")
            return ResolvedTemplate(
                name=stored.name,
                subject_template=stored.subject_template,
                message_template=stored.message_template,
                template_id=stored.id,
            )

        default = get_default_template(event_type, channel)
        self._lazy.debug(lambda: f"Using built-in template {default.name} for {event_type}/{channel}")
        return ResolvedTemplate(
            name=default.name,
            subject_template=default.subject_template,
            message_template=default.message_template,
        )

    async def render(
        self,
        session: AsyncSession,
        event_type: str,
        channel: str,
        context: dict[str, Any],
    ) -> tuple[RenderedContent, ResolvedTemplate]:
        """Resolve and render the template for an event.

        Raises:
            TemplateRenderError: If the resolved template cannot be rendered.
        """
        template = await self.resolve(session, event_type, channel)
        rendered = self._renderer.render(
            template.name,
            template.subject_template,
            template.message_template,
            context,
        )
        return rendered, template

    async def list_templates(
        self,
        session: AsyncSession,
        *,
        channel: str | None = None,
        active_only: bool = False,
    ) -> Sequence[NotificationTemplate]:
        return await self._repository.list_all(session, channel=channel, active_only=active_only)

    async def get_template(self, session: AsyncSession, event_type: str, channel: str) -> NotificationTemplate:
        """Stored template for a pair, active or not.

        Raises:
            NotFoundError: If nothing is stored for the pair.
        """
        template = await self._repository.get_by_key(session, event_type, channel)
        if template is None:
            raise NotFoundError("NotificationTemplate", {"event_type": event_type, "channel": channel})
        return template

    async def upsert_template(
        self,
        session: AsyncSession,
        *,
        event_type: str,
        channel: str,
        name: str,
        message_template: str,
        subject_template: str | None = None,
        is_active: bool = True,
    ) -> tuple[NotificationTemplate, bool]:
        """Create or replace the stored template for a pair.

        Both templates are compiled first, so a syntax error never reaches
        the table.

        Returns:
            The stored row and whether it was newly created.

        Raises:
            TemplateRenderError: If the subject or message does not compile.
        """
        self._renderer.validate(message_template)
        if subject_template:
            self._renderer.validate(subject_template)

        template = await self._repository.get_by_key(session, event_type, channel)
        created = template is None
        if template is None:
            template = await self._repository.create(
                session,
                NotificationTemplate(
                    name=name,
                    event_type=event_type,
                    channel=channel,
                    subject_template=subject_template,
                    message_template=message_template,
                    is_active=is_active,
                ),
            )
        else:
            template.name = name
            template.subject_template = subject_template
            template.message_template = message_template
            template.is_active = is_active
            await session.flush()

        logger.info(
            "Notification template stored",
            extra={"event_type": event_type, "channel": channel, "template": name, "created": created},
        )
        return template, created

    async def deactivate_template(self, session: AsyncSession, event_type: str, channel: str) -> NotificationTemplate:
        """Stop using a stored template; events fall back to the built-in one.

        The row stays so that seeding does not bring the default back.

        Raises:
            NotFoundError: If nothing is stored for the pair.
        """
        template = await self.get_template(session, event_type, channel)
        if template.is_active:
            template.is_active = False
            await session.flush()
            logger.info(
                "Notification template deactivated",
                extra={"event_type": event_type, "channel": channel, "template": template.name},
            )
        return template

    async def seed_defaults(self, session: AsyncSession) -> int:
        """Insert built-in templates whose (event type, channel) is not stored yet.

        Existing rows, including deactivated ones, are left untouched.

        Returns:
            Number of templates inserted.
        """
        existing = await self._repository.existing_keys(session)
        missing = [
            NotificationTemplate(
                name=default.name,
                event_type=default.event_type,
                channel=default.channel,
                subject_template=default.subject_template,
                message_template=default.message_template,
                is_active=True,
            )
            for default in DEFAULT_TEMPLATES
            if (default.event_type, default.channel) not in existing
        ]
        if missing:
            await self._repository.create_many(session, missing)

        logger.info(
            "Seeded default notification templates",
            extra={"inserted": len(missing), "already_present": len(DEFAULT_TEMPLATES) - len(missing)},
        )
        return len(missing)


__all__ = ["NotificationTemplateService", "ResolvedTemplate"]
