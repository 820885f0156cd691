"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
import socket
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FocusConfig(BaseModel):
    """Local focus session configuration."""

    reward_points_per_minute: int = Field(default=1, ge=0, description="Points per focused minute")
    tab_switch_penalty: int = Field(default=5, ge=0, description="Points lost per tab switch")
    penalty_debounce_seconds: float = Field(
        default=2.0, ge=0, description="Ignore hidden events this close to the last penalty"
    )
    default_minutes: int = Field(default=25, ge=1, le=999)
    tick_interval_seconds: float = Field(default=1.0, gt=0)


class SharedTimerConfig(BaseModel):
    """Shared timer and remote store configuration."""

    backend: str = Field(default="firebase", pattern="^(firebase|memory)$")
    database_url: str = Field(default="", description="Firebase Realtime Database URL")
    auth_token: str | None = Field(default=None, description="Database secret or ID token")
    timer_key: str = Field(default="sharedTimer")
    timer_id: str = Field(default="default")
    client_id: str = Field(default_factory=socket.gethostname)
    refresh_interval_ms: int = Field(default=100, ge=10, le=100, description="Projection refresh period")
    write_release_ms: int = Field(default=300, ge=10, le=2000, description="In-flight write release window")
    write_timeout_seconds: float = Field(default=5.0, gt=0)


class WebConfig(BaseModel):
    """HTTP API configuration."""

    host: str = Field(default="127.0.0.1", description="Bind to localhost only")
    port: int = Field(default=8080, ge=1024, le=65535)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FOKUS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/fokus")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/fokus")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/fokus")

    # Log level
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    focus: FocusConfig = Field(default_factory=FocusConfig)
    shared: SharedTimerConfig = Field(default_factory=SharedTimerConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment beats the YAML values passed in as init kwargs
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "fokus.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/fokus/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        # Secrets stay in the environment
        data = self.model_dump(exclude={"shared": {"auth_token"}}, exclude_none=True)

        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        os.chmod(config_path, 0o600)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
