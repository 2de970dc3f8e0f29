"""
Shared configuration management for the Candidate Details service.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ACCESS_",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True, description="JSON log lines; console rendering when false")

    # Store
    postgres_dsn: str = Field(default="postgres://localhost:5432/access")
    store_backend: str = Field(default="postgres", description="postgres or memory")
    postgres_min_pool_size: int = Field(default=2)
    postgres_max_pool_size: int = Field(default=10)
    postgres_command_timeout: float = Field(default=30.0)

    # Internal services
    auth_service_url: str = Field(default="http://localhost:8010")

    # External candidate data provider
    provider_url: str = Field(default="http://localhost:8888/api")
    provider_timeout_seconds: float = Field(default=10.0, gt=0)
    provider_failure_threshold: int = Field(default=5, ge=1)
    provider_recovery_timeout: float = Field(default=60.0, ge=0)

    # Cache
    cache_expiry_hours: float = Field(default=24.0, ge=0)

    # Observability
    enable_tracing: bool = Field(default=False)
    otel_exporter: str = Field(default="http://localhost:4317")
    enable_console_tracing: bool = Field(default=False)

    # CORS
    cors_origins: Optional[List[str]] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)

    def resolved_cors_origins(self) -> List[str]:
        """Allowed CORS origins; open in local environments only."""
        if self.cors_origins is not None:
            return list(self.cors_origins)
        return ["*"] if self.env == "local" else []


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
