"""Notification store settings (``DB_`` prefix).

Production runs PostgreSQL through the async psycopg driver, configured
either with ``DB_HOST``/``DB_USER``/... or one ``DB_DATABASE_URL``. Any other
SQLAlchemy async URL given as the DSN (``sqlite+aiosqlite://`` for local
runs and tests) is used as-is.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .yaml_sources import create_yaml_source


class DatabaseSettings(BaseSettings):
    dsn: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DB_DATABASE_URL", "DATABASE_URL", "dsn"),
        description="Complete SQLAlchemy URL; overrides the component fields",
    )

    host: str = Field(default="localhost", min_length=1, max_length=255)
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = Field(default="postgres", min_length=1, max_length=100)
    password: SecretStr = SecretStr("postgres")
    name: str = Field(default="notification_service", min_length=1, max_length=100)
    driver: str = "psycopg"
    application_name: str = Field(default="notification-service", description="Shown in pg_stat_activity")

    pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        validation_alias=AliasChoices("DB_POOL_SIZE", "DB_CONNECTION_LIMIT", "pool_size"),
    )
    max_overflow: int = Field(default=10, ge=0, le=100)
    pool_timeout: float = Field(default=30.0, ge=0.1, le=300.0)
    pool_recycle: int = Field(default=1800, ge=0, le=86400)
    pool_pre_ping: bool = True
    echo: bool = Field(default=False, description="Log every SQL statement")

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        return (
            init_settings,
            create_yaml_source(settings_cls, "db"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("dsn")
    @classmethod
    def _check_dsn(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                make_url(v)
            except ArgumentError as e:
                raise ValueError(f"Invalid database URL: {e}") from e
        return v

    @model_validator(mode="after")
    def _apply_dsn(self) -> DatabaseSettings:
        """Copy a PostgreSQL DSN into the component fields (the model is frozen)."""
        if not self.is_postgres_dsn:
            return self

        parsed = make_url(self.dsn)
        overrides = {
            "host": parsed.host,
            "port": parsed.port,
            "user": parsed.username,
            "password": SecretStr(parsed.password) if parsed.password else None,
            "name": parsed.database,
            "driver": parsed.drivername.partition("+")[2] or None,
        }
        for field_name, value in overrides.items():
            if value is not None:
                object.__setattr__(self, field_name, value)
        return self

    @property
    def is_postgres_dsn(self) -> bool:
        return bool(self.dsn) and make_url(self.dsn).get_backend_name() == "postgresql"

    @property
    def is_sqlite(self) -> bool:
        """SQLite stores get no pool settings."""
        return bool(self.dsn) and make_url(self.dsn).get_backend_name() == "sqlite"

    @property
    def url(self) -> URL:
        return URL.create(
            f"postgresql+{self.driver}",
            username=self.user,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.name,
            query={"application_name": self.application_name},
        )

    @property
    def safe_url(self) -> str:
        """URL for logs and CLI output, password masked."""
        if self.dsn and not self.is_postgres_dsn:
            return make_url(self.dsn).render_as_string(hide_password=True)
        return self.url.render_as_string(hide_password=True)

    def get_sqlalchemy_url(self) -> str:
        """URL for ``create_async_engine``; non-PostgreSQL DSNs pass through untouched."""
        if self.dsn and not self.is_postgres_dsn:
            return self.dsn
        return self.url.render_as_string(hide_password=False)

    def sqlalchemy_engine_kwargs(self) -> dict[str, Any]:
        if self.is_sqlite:
            return {"echo": self.echo}
        return {
            "echo": self.echo,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
            "pool_pre_ping": self.pool_pre_ping,
        }
