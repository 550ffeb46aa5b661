"""Worker logging settings (``LOG_`` prefix)."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """How the worker writes logs.

    Records go through one queue; the listener fans them out to stderr and,
    when ``LOG_FILE_ENABLED`` is set, to a rotating JSONL file.

    Example: LOG_LEVEL=DEBUG LOG_JSON=false notification-service worker
    """

    service_name: str = Field(
        default="notification-service",
        description="Static 'service' field on JSON records",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(
        default=True,
        validation_alias=AliasChoices("LOG_JSON", "json"),
        description="JSON Lines output; plain text when false",
    )

    # Handlers
    console_enabled: bool = Field(default=True, description="Write to stderr")
    console_level: LogLevel | None = Field(default=None, description="Defaults to level")
    file_enabled: bool = Field(default=False, description="Also write to file_path")
    file_level: LogLevel | None = Field(default=None, description="Defaults to level")
    file_path: Path = Field(default=Path("logs/notification-service.log.jsonl"))
    file_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024, le=1024**3)
    file_backup_count: int = Field(default=5, ge=0, le=100)

    # Record enrichment
    include_context: bool = Field(
        default=True,
        description="Copy the delivery context (correlation_id, event_type, ...) onto records",
    )
    include_function_name: bool = Field(default=False, description="Add the calling function to records")
    capture_warnings: bool = Field(default=True, description="Route the warnings module through logging")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_yaml_source(settings_cls, "logging"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("level", "console_level", "file_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str | None) -> str | None:
        return v.upper() if isinstance(v, str) else v
