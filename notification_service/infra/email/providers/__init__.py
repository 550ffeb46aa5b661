"""Email delivery providers.

- smtp: aiosmtplib delivery (production)
- console: log instead of sending (development)
"""

from __future__ import annotations

from .base import BaseEmailProvider, EmailDeliveryResult, EmailProvider
from .console import ConsoleProvider
from .factory import EmailProviderFactory, get_email_provider, reset_email_provider
from .smtp import SMTPProvider

__all__ = [
    "BaseEmailProvider",
    "ConsoleProvider",
    "EmailDeliveryResult",
    "EmailProvider",
    "EmailProviderFactory",
    "SMTPProvider",
    "get_email_provider",
    "reset_email_provider",
]
