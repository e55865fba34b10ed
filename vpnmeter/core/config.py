"""Application settings and configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

ACCUMULATOR_FILENAME = "accumulator.json"


class Settings(BaseSettings):
    """Strongly-typed configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="VPN Bandwidth Meter", description="Human-readable service name.")
    environment: str = Field(default="local", description="Deployment environment identifier.")
    log_level: str = Field(default="INFO", description="Application log level.")

    storage_path: Path = Field(default=Path("./data"), description="Root storage directory.")
    bandwidth_storage_dir: str = Field(
        default="bandwidth",
        description="Subdirectory of storage_path holding the accumulator document.",
    )
    collection_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between two collection cycles.",
    )
    collector_enabled: bool = Field(
        default=True,
        description="Run the background collection loop alongside the API.",
    )

    openvpn_status_path: Path = Field(
        default=Path("/var/log/openvpn/status.log"),
        description="OpenVPN status file with CLIENT_LIST records.",
    )
    ipsec_container_name: str = Field(
        default="ipsec-mobify-server",
        description="Docker container running the IPsec server.",
    )
    docker_socket_path: Path = Field(
        default=Path("/var/run/docker.sock"),
        description="Unix socket of the Docker Engine API.",
    )
    docker_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single Docker stats request.",
    )

    lock_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts to open and lock the accumulator file.",
    )
    lock_retry_delay_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Fixed delay between lock attempts.",
    )

    auth_token: str | None = Field(
        default=None,
        description="Bearer token required on /api/v1 routes. Auth is disabled when unset.",
    )

    host: str = Field(default="0.0.0.0", description="Bind address for the HTTP server.")
    port: int = Field(default=8080, description="Bind port for the HTTP server.")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources = [init_settings, env_settings, dotenv_settings]
        config_path = os.getenv("CONFIG_PATH")
        if config_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=config_path))
        sources.append(file_secret_settings)
        return tuple(sources)

    @property
    def bandwidth_storage_path(self) -> Path:
        """Directory holding the persisted accumulator."""

        return Path(self.storage_path) / self.bandwidth_storage_dir

    @property
    def accumulator_path(self) -> Path:
        return self.bandwidth_storage_path / ACCUMULATOR_FILENAME

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_token)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()
