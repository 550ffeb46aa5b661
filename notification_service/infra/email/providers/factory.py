"""Email provider factory.

Maps ``EMAIL_BACKEND`` onto a provider class and caches the instance.

Usage:
    provider = get_email_provider()
    result = await provider.send(message)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notification_service.core.exceptions import ChannelDisabledError

from .console import ConsoleProvider
from .smtp import SMTPProvider

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings

    from .base import BaseEmailProvider

logger = logging.getLogger(__name__)


class EmailProviderFactory:
    """Registry of provider classes keyed by backend name.

    Example:
        factory = EmailProviderFactory()
        factory.register("console", ConsoleProvider)
        provider = factory.create(settings)
    """

    def __init__(self) -> None:
        self._registry: dict[str, type[BaseEmailProvider]] = {}
        self.register("smtp", SMTPProvider)
        self.register("console", ConsoleProvider)

    def register(self, name: str, provider_class: type[BaseEmailProvider]) -> None:
        self._registry[name.lower()] = provider_class

    def list_providers(self) -> list[str]:
        return sorted(self._registry)

    def create(self, settings: EmailSettings) -> BaseEmailProvider:
        """Instantiate the provider selected by ``settings.backend``.

        Raises:
            ChannelDisabledError: If email is disabled, not configured, or the
                backend has no registered provider.
        """
        if not settings.enabled:
            raise ChannelDisabledError("email", reason="EMAIL_ENABLED is false")
        if not settings.is_configured:
            raise ChannelDisabledError("email", reason=f"{settings.backend} backend is not configured")

        provider_class = self._registry.get(settings.backend.lower())
        if provider_class is None:
            raise ChannelDisabledError("email", reason=f"unknown backend '{settings.backend}'")

        provider = provider_class(settings)
        logger.info("Email provider ready", extra={"provider": provider.provider_name})
        return provider


_factory = EmailProviderFactory()
_provider: BaseEmailProvider | None = None


def get_email_provider(settings: EmailSettings | None = None) -> BaseEmailProvider:
    """Return the configured email provider.

    Without explicit ``settings`` the provider is built once from
    ``get_email_settings()`` and reused.

    Raises:
        ChannelDisabledError: If email delivery is disabled or misconfigured.
    """
    global _provider

    if settings is not None:
        return _factory.create(settings)

    if _provider is None:
        from notification_service.core.settings import get_email_settings

        _provider = _factory.create(get_email_settings())
    return _provider


def reset_email_provider() -> None:
    """Forget the cached provider (tests, settings reload)."""
    global _provider
    _provider = None


__all__ = [
    "EmailProviderFactory",
    "get_email_provider",
    "reset_email_provider",
]
