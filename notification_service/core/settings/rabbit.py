"""RabbitMQ settings (``RABBIT_`` prefix).

Connection details come either from one AMQP URI (``RABBIT_AMQP_URI``, or
the legacy ``RABBITMQ_URL``) or from the individual
host/port/credential fields. A URI wins over the fields it specifies.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, unquote, urlparse

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source

_NAME_PATTERN = r"^[a-zA-Z0-9_.-]+$"


class RabbitSettings(BaseSettings):
    """Broker connection, topology and consumer settings.

    The worker consumes one durable queue bound to a topic exchange (one
    binding per handled event type) and publishes outcome events back to
    the same exchange.
    """

    enabled: bool = True
    amqp_uri: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RABBIT_AMQP_URI", "RABBITMQ_URL", "amqp_uri"),
    )

    host: str = Field(default="localhost", min_length=1, max_length=255)
    port: int = Field(default=5672, ge=1, le=65535)
    username: str = Field(default="guest", min_length=1, max_length=100)
    password: SecretStr = SecretStr("guest")
    vhost: str = "/"
    ssl_enabled: bool = Field(default=False, description="Connect with amqps://")

    connection_timeout: float = Field(default=10.0, ge=1.0, le=300.0)
    graceful_timeout: float = Field(
        default=15.0,
        ge=0.1,
        le=300.0,
        description="Seconds in-flight handlers get to finish on shutdown",
    )

    exchange_name: str = Field(
        default="aioutlet.events",
        max_length=100,
        pattern=_NAME_PATTERN,
        validation_alias=AliasChoices("RABBIT_EXCHANGE_NAME", "RABBITMQ_EXCHANGE", "exchange_name"),
    )
    queue_name: str = Field(
        default="notifications",
        max_length=100,
        pattern=_NAME_PATTERN,
        validation_alias=AliasChoices("RABBIT_QUEUE_NAME", "RABBITMQ_QUEUE_NOTIFICATIONS", "queue_name"),
    )
    dead_letter_enabled: bool = Field(
        default=True,
        description="Route rejected deliveries to <queue>_dlq through <queue>.dlx",
    )
    prefetch_count: int = Field(default=10, ge=1, le=1000, description="Max unacked deliveries in flight")

    model_config = SettingsConfigDict(
        env_prefix="RABBIT_",
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
            create_yaml_source(settings_cls, "rabbit"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _apply_uri(self) -> RabbitSettings:
        # frozen model: components are overwritten in place
        if not self.amqp_uri:
            return self

        parsed = urlparse(self.amqp_uri)
        overrides: dict[str, Any] = {
            "host": parsed.hostname,
            "port": parsed.port,
            "username": unquote(parsed.username) if parsed.username else None,
            "password": SecretStr(unquote(parsed.password)) if parsed.password else None,
            "vhost": unquote(parsed.path.lstrip("/")) if parsed.path not in ("", "/") else None,
        }
        for name, value in overrides.items():
            if value is not None:
                object.__setattr__(self, name, value)
        if parsed.scheme == "amqps":
            object.__setattr__(self, "ssl_enabled", True)
        return self

    @property
    def _scheme(self) -> str:
        return "amqps" if self.ssl_enabled else "amqp"

    @property
    def url(self) -> str:
        """Effective AMQP URI built from the component fields."""
        secret = self.password.get_secret_value()
        auth = quote(self.username, safe="")
        if secret:
            auth += ":" + quote(secret, safe="")
        vhost = self.vhost.lstrip("/")
        return f"{self._scheme}://{auth}@{self.host}:{self.port}/{quote(vhost, safe='')}"

    @property
    def safe_url(self) -> str:
        return f"{self._scheme}://{self.username}:***@{self.host}:{self.port}/{self.vhost.lstrip('/')}"

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.host)

    @property
    def dead_letter_exchange(self) -> str:
        return f"{self.queue_name}.dlx"

    @property
    def dead_letter_queue(self) -> str:
        return f"{self.queue_name}_dlq"

    def get_url(self) -> str:
        """AMQP URI for the broker; raises ``ValueError`` when RabbitMQ is disabled."""
        if not self.enabled:
            raise ValueError("RabbitMQ is not enabled")
        return self.url
