"""
Shared configuration management for the Delivery Fee service.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DELIVERY_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True, description="JSON lines, or console rendering when false")

    # Storage
    storage_backend: str = Field(default="memory", description="memory or postgres")
    postgres_dsn: str = Field(default="postgres://localhost:5432/deliveryfee")

    # Weather feed
    weather_feed_url: str = Field(
        default="https://www.ilmateenistus.ee/ilma_andmed/xml/observations.php"
    )
    weather_import_enabled: bool = Field(default=True)
    weather_import_interval_seconds: int = Field(default=900, ge=1)
    weather_fetch_timeout_seconds: float = Field(default=10.0, gt=0)

    # Fee calculation
    fee_engine: str = Field(default="rules", description="static or rules")
    seed_rules: bool = Field(default=True)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
