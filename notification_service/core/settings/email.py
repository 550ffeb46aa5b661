"""Email channel settings (``EMAIL_`` prefix).

Legacy SMTP variables (``SMTP_HOST``, ``SMTP_USER``,
``EMAIL_FROM_ADDRESS``...) are accepted as aliases so existing deployment
manifests keep working.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source


class EmailSettings(BaseSettings):
    """Email channel configuration.

    ``backend=console`` logs messages instead of sending them. With
    ``enabled=false`` events are still recorded, and each notification is
    marked failed straight away.
    """

    enabled: bool = True
    backend: Literal["smtp", "console"] = Field(
        default="smtp",
        validation_alias=AliasChoices("EMAIL_BACKEND", "EMAIL_PROVIDER", "backend"),
    )

    smtp_host: str = Field(
        default="localhost",
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("EMAIL_SMTP_HOST", "SMTP_HOST", "smtp_host"),
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("EMAIL_SMTP_PORT", "SMTP_PORT", "smtp_port"),
    )
    smtp_username: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("EMAIL_SMTP_USERNAME", "SMTP_USER", "smtp_username"),
    )
    smtp_password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("EMAIL_SMTP_PASSWORD", "SMTP_PASS", "smtp_password"),
    )
    use_tls: bool = Field(default=False, description="STARTTLS after connecting (usually port 587)")
    use_ssl: bool = Field(
        default=False,
        validation_alias=AliasChoices("EMAIL_USE_SSL", "SMTP_SECURE", "use_ssl"),
        description="Implicit TLS from the first byte (usually port 465)",
    )
    validate_certs: bool = True
    timeout: float = Field(default=30.0, ge=1.0, le=300.0, description="SMTP timeout in seconds")

    default_from_email: EmailStr = Field(
        default="noreply@aioutlet.com",
        validation_alias=AliasChoices("EMAIL_DEFAULT_FROM_EMAIL", "EMAIL_FROM_ADDRESS", "default_from_email"),
    )
    default_from_name: str = Field(
        default="AI Outlet",
        max_length=100,
        validation_alias=AliasChoices("EMAIL_DEFAULT_FROM_NAME", "EMAIL_FROM_NAME", "default_from_name"),
    )

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
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
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        return (
            init_settings,
            create_yaml_source(settings_cls, "email"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def check_transport_and_auth(self) -> EmailSettings:
        if self.use_tls and self.use_ssl:
            msg = "use_tls and use_ssl are mutually exclusive"
            raise ValueError(msg)
        if (self.smtp_username is None) != (self.smtp_password is None):
            msg = "smtp_username and smtp_password must be provided together"
            raise ValueError(msg)
        return self

    @property
    def is_configured(self) -> bool:
        """True when the channel is on and the backend has what it needs."""
        return self.enabled and (self.backend == "console" or bool(self.smtp_host))

    @property
    def requires_auth(self) -> bool:
        return self.smtp_username is not None

    @property
    def from_header(self) -> str:
        """``Name <address>``, or the bare address when no name is set."""
        if self.default_from_name:
            return f"{self.default_from_name} <{self.default_from_email}>"
        return str(self.default_from_email)

    def get_smtp_url(self) -> str:
        """Connection URL for logs; never includes the password."""
        scheme = "smtps" if self.use_ssl else "smtp"
        user = f"{self.smtp_username}@" if self.smtp_username else ""
        return f"{scheme}://{user}{self.smtp_host}:{self.smtp_port}"
