"""Settings for the notification worker, one frozen model per domain.

Sources, highest precedence first: init kwargs, `conf/<domain>.yaml` plus
`conf/<domain>.d/*.yaml`, environment variables, `.env`, then the secrets dir.
"""

from __future__ import annotations

from .app import AppSettings
from .db import DatabaseSettings
from .email import EmailSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_email_settings,
    get_logging_settings,
    get_otel_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .otel import OtelSettings
from .rabbit import RabbitSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "EmailSettings",
    "LoggingSettings",
    "OtelSettings",
    "RabbitSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_otel_settings",
    "get_rabbit_settings",
]
