"""OpenTelemetry tracing settings (``OTEL_`` prefix).

Export is optional. With it off the worker still reads and forwards
``traceparent`` headers; spans are simply not shipped anywhere.

Example: OTEL_ENABLED=true OTEL_ENDPOINT=http://tempo:4317
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AnyUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source

SamplerType = Literal["always_on", "always_off", "trace_id_ratio", "parent_based"]


class OtelSettings(BaseSettings):
    enabled: bool = False
    endpoint: AnyUrl | None = Field(default=None, description="OTLP gRPC collector endpoint")
    insecure: bool = Field(default=True, description="Plaintext gRPC to the collector")
    export_timeout: int = Field(default=10, ge=1, le=60)

    service_name: str = Field(default="notification-service", min_length=1, max_length=100)
    service_version: str = Field(default="1.0.0", min_length=1, max_length=50)

    # parent_based follows the sampled flag of the incoming traceparent
    sampler_type: SamplerType = "parent_based"
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(
        env_prefix="OTEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return (
            init_settings,
            create_yaml_source(settings_cls, "otel"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def require_endpoint_when_enabled(self) -> OtelSettings:
        if self.enabled and self.endpoint is None:
            raise ValueError("OTEL endpoint must be provided when tracing is enabled")
        return self

    @property
    def is_configured(self) -> bool:
        return self.enabled and self.endpoint is not None

    def exporter_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``OTLPSpanExporter``."""
        return {"endpoint": str(self.endpoint), "insecure": self.insecure, "timeout": self.export_timeout}

    def resource_attributes(self) -> dict[str, str]:
        from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION

        return {SERVICE_NAME: self.service_name, SERVICE_VERSION: self.service_version}

    def get_sampler(self) -> Any:
        from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, ParentBased, TraceIdRatioBased

        match self.sampler_type:
            case "always_on":
                return ALWAYS_ON
            case "always_off":
                return ALWAYS_OFF
            case "trace_id_ratio":
                return TraceIdRatioBased(self.sample_rate)
            case _:
                return ParentBased(root=TraceIdRatioBased(self.sample_rate))
