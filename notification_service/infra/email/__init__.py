"""Outbound email: message model and delivery providers."""

from __future__ import annotations

from .providers import (
    BaseEmailProvider,
    ConsoleProvider,
    EmailDeliveryResult,
    EmailProvider,
    SMTPProvider,
    get_email_provider,
    reset_email_provider,
)
from .schemas import EmailMessage

__all__ = [
    "BaseEmailProvider",
    "ConsoleProvider",
    "EmailDeliveryResult",
    "EmailMessage",
    "EmailProvider",
    "SMTPProvider",
    "get_email_provider",
    "reset_email_provider",
]
