"""Application configuration with pydantic-settings + TOML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict, TomlConfigSettingsSource

from robotforge.errors import ConfigError
from robotforge.models import AnimationAction


def _default_config_dir() -> Path:
    return Path.home() / ".robotforge"


def _default_data_dir() -> Path:
    return _default_config_dir() / "data"


class GeminiSettings(BaseSettings):
    """Text/image generation service configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_", env_file=".env", extra="ignore")

    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    stats_model: str = "gemini-2.5-flash"
    image_model: str = "nano-banana-pro-preview"
    timeout: float = Field(default=120.0, gt=0)

    def require_api_key(self) -> str:
        key = self.api_key or os.environ.get("GEMINI_API_KEY", "")
        if not key:
            msg = "GEMINI_API_KEY not found (set it in the environment or config.gemini.api_key)"
            raise ConfigError(msg)
        return key


class MeshySettings(BaseSettings):
    """3D asset service configuration."""

    model_config = SettingsConfigDict(env_prefix="MESHY_AI_", env_file=".env", extra="ignore")

    api_key: str = ""
    base_url: str = "https://api.meshy.ai/openapi/v1"
    enable_pbr: bool = True
    timeout: float = Field(default=60.0, gt=0)
    download_timeout: float = Field(default=300.0, gt=0)

    def require_api_key(self) -> str:
        key = self.api_key or os.environ.get("MESHY_AI_API_KEY", "")
        if not key:
            msg = "MESHY_AI_API_KEY not found (set it in the environment or config.meshy.api_key)"
            raise ConfigError(msg)
        return key


class PollSettings(BaseSettings):
    """Polling cadence and attempt budgets per job kind."""

    mesh_interval: float = Field(default=5.0, ge=0)
    rigging_interval: float = Field(default=10.0, ge=0)
    animation_interval: float = Field(default=10.0, ge=0)
    max_attempts: int = Field(default=120, gt=0)


class AnimationSettings(BaseSettings):
    """Action selectors for the two animation jobs."""

    idle_action_id: int = Field(default=AnimationAction.IDLE, ge=0)
    attack_action_id: int = Field(default=AnimationAction.ATTACK, ge=0)


class AppConfig(BaseSettings):
    """Root application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ROBOTFORGE_",
        env_nested_delimiter="__",
    )

    config_dir: Path = Field(default_factory=_default_config_dir)
    data_dir: Path = Field(default_factory=_default_data_dir)
    active_backend: Literal["live", "mock"] = "live"
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    meshy: MeshySettings = Field(default_factory=MeshySettings)
    poll: PollSettings = Field(default_factory=PollSettings)
    animation: AnimationSettings = Field(default_factory=AnimationSettings)

    @property
    def assets_dir(self) -> Path:
        return self.data_dir / "assets"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "robots.db"

    @classmethod
    def settings_customise_sources(cls, settings_cls, **kwargs):  # type: ignore[override]
        toml_path = _default_config_dir() / "config.toml"
        sources = (
            kwargs.get("init_settings"),
            kwargs.get("env_settings"),
        )
        if toml_path.exists():
            sources = (*sources, TomlConfigSettingsSource(settings_cls, toml_file=toml_path))
        return (*sources, kwargs.get("dotenv_settings"), kwargs.get("file_secret_settings"))

    def ensure_dirs(self) -> None:
        """Create config and data directories if they don't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.assets_dir.mkdir(parents=True, exist_ok=True)

    def require_credentials(self) -> None:
        """Fail fast when either service key is missing."""
        self.gemini.require_api_key()
        self.meshy.require_api_key()


def load_config() -> AppConfig:
    """Load application config, creating defaults if needed."""
    config = AppConfig()
    config.ensure_dirs()
    return config
