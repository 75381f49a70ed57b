"""Configuration management for remotedesk.

Loads settings from a YAML configuration file with environment variable
overrides for deployment values (store URL, ports). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/remotedesk.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    expose_errors: bool = Field(
        default=False,
        description="Return raw exception text in 500 responses (closed admin deployments only)",
    )


class StoreConfig(BaseModel):
    backend: Literal["memory", "redis"] = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    namespace: str = Field(default="remote_control")
    socket_timeout: float = Field(default=5.0, gt=0)
    max_attempts: int = Field(default=16, gt=0, description="Compare-and-set attempts per update")
    retry_backoff: float = Field(default=0.002, ge=0, description="Seconds added per failed attempt")


class PresenceConfig(BaseModel):
    online_window_ms: int = Field(default=120_000, gt=0)


class ScreenConfig(BaseModel):
    ttl_ms: int = Field(default=15_000, gt=0)
    min_payload_bytes: int = Field(default=100, ge=0)
    default_quality: int = Field(default=70, ge=1, le=100)


class ClientConfig(BaseModel):
    base_url: str = Field(default="http://localhost:8080")
    timeout: float = Field(default=10.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the remotedesk relay.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "REMOTEDESK_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    screen: ScreenConfig = Field(default_factory=ScreenConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Init kwargs carry the YAML file, which ranks below the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    redis_url = os.environ.get("REDIS_URL", "")
    if not redis_url:
        return

    if "store" not in yaml_data:
        yaml_data["store"] = {}

    if not yaml_data["store"].get("redis_url"):
        yaml_data["store"]["redis_url"] = redis_url
    if not yaml_data["store"].get("backend"):
        yaml_data["store"]["backend"] = "redis"
