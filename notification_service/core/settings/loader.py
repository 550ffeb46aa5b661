"""Cached settings loaders.

Each domain is read and validated once per process. Tests that change the
environment call ``clear_all_caches()`` afterwards, or build the settings
object directly (``EmailSettings(enabled=False)``).
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .db import DatabaseSettings
from .email import EmailSettings
from .logs import LoggingSettings
from .otel import OtelSettings
from .rabbit import RabbitSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_rabbit_settings() -> RabbitSettings:
    return RabbitSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    return EmailSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_otel_settings() -> OtelSettings:
    return OtelSettings()


_LOADERS = (
    get_app_settings,
    get_db_settings,
    get_rabbit_settings,
    get_email_settings,
    get_logging_settings,
    get_otel_settings,
)


def clear_all_caches() -> None:
    """Forget every loaded settings object so the next call re-reads the environment."""
    for loader in _LOADERS:
        loader.cache_clear()
