"""
Shared configuration management for the Micro Stats Exporter.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class ExporterConfig(BaseConfig):
    """Exporter configuration.

    Every field can be set through an environment variable of the same name,
    e.g. ``SCRAPE_INTERVAL=30`` or ``NATS_URLS=nats://a:4222,nats://b:4222``.
    """

    # HTTP listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10015, ge=1, le=65535)

    # NATS connection
    name: str = Field(default="micro-exporter", description="NATS connection name")
    nats_urls: str = Field(default="nats://localhost:4222", description="Comma separated NATS URLs")
    credentials_file: Optional[str] = Field(default=None, description="User credentials file")
    nats_jwt: Optional[str] = Field(default=None, description="User JWT")
    nats_seed: Optional[str] = Field(default=None, description="User nkey seed")

    # Discovery
    scrape_interval: float = Field(
        default=15.0,
        gt=0,
        description="Interval in seconds between service discovery cycles"
    )
    discovery_timeout: float = Field(
        default=2.0,
        gt=0,
        description="How long a discovery cycle waits for stats responses"
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> "ExporterConfig":
        if self.discovery_timeout >= self.scrape_interval:
            raise ValueError("discovery_timeout must be shorter than scrape_interval")
        if bool(self.nats_jwt) != bool(self.nats_seed):
            raise ValueError("nats_jwt and nats_seed must be set together")
        return self

    @property
    def servers(self) -> List[str]:
        """NATS server URLs as a list."""
        return [url.strip() for url in self.nats_urls.split(",") if url.strip()]


@lru_cache(maxsize=1)
def get_config() -> ExporterConfig:
    """Get the process-wide exporter configuration."""
    return ExporterConfig()
