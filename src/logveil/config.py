"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation,
with an optional YAML file supplying defaults that the environment overrides.
"""

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATHS = [
    "config.yaml",  # Current directory
    "/etc/logveil/config.yaml",
]


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        for path in DEFAULT_CONFIG_PATHS:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class AssuranceMode(str, Enum):
    """How strictly a missing secret is treated."""

    HIGH = "high"
    LOW = "low"


class PrivacySettings(BaseSettings):
    """Pseudonymization configuration."""

    secret: str = Field(
        default="",
        validation_alias=AliasChoices("LOGVEIL_PRIVACY_SECRET", "SALT"),
        description="Process-wide secret mixed into the daily salt",
    )
    assurance_mode: AssuranceMode = Field(
        default=AssuranceMode.HIGH,
        description="high: missing secret is fatal; low: fall back to a well-known salt",
    )

    @field_validator("assurance_mode", mode="before")
    def normalize_mode(cls, v: Any) -> Any:
        """Accept mode names in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def fallback_salt_allowed(self) -> bool:
        return self.assurance_mode is AssuranceMode.LOW

    model_config = SettingsConfigDict(env_prefix="LOGVEIL_PRIVACY_", populate_by_name=True)


class PathSettings(BaseSettings):
    """Input and output locations."""

    input_path: Path = Field(default=Path("/tmp/access.pipe"), description="Named pipe fed by nginx")
    tracked_path: Path = Field(default=Path("/data/logs/goaccess.log"), description="Pseudonymized analytics log")
    untracked_path: Path = Field(default=Path("/data/logs/untracked.log"), description="Raw internal traffic log")
    file_mode: int = Field(default=0o644, description="Permission bits for newly created output files")

    @field_validator("file_mode", mode="before")
    def parse_octal_mode(cls, v: Any) -> Any:
        """Read string modes such as "0644" as octal."""
        if isinstance(v, str):
            return int(v, 8)
        return v

    model_config = SettingsConfigDict(env_prefix="LOGVEIL_PATHS_")


class RotationSettings(BaseSettings):
    """Log rotation handling."""

    signal_name: str = Field(default="SIGHUP", description="Signal that requests an output reopen")

    model_config = SettingsConfigDict(env_prefix="LOGVEIL_ROTATION_")


class Settings(BaseSettings):
    """Main relay settings."""

    log_level: str = Field(default="INFO", description="Log level")
    metrics_port: int = Field(default=0, description="Prometheus exposition port (0 disables)")

    # Component settings
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    rotation: RotationSettings = Field(default_factory=RotationSettings)

    model_config = SettingsConfigDict(env_prefix="LOGVEIL_", case_sensitive=False)


_config_path: Optional[str] = None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""
    config_data = load_config_file(_config_path)

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    return Settings()


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "log_level"): "LOGVEIL_LOG_LEVEL",
        ("server", "metrics_port"): "LOGVEIL_METRICS_PORT",
        ("privacy", "assurance_mode"): "LOGVEIL_PRIVACY_ASSURANCE_MODE",
        ("paths", "input_path"): "LOGVEIL_PATHS_INPUT_PATH",
        ("paths", "tracked_path"): "LOGVEIL_PATHS_TRACKED_PATH",
        ("paths", "untracked_path"): "LOGVEIL_PATHS_UNTRACKED_PATH",
        ("paths", "file_mode"): "LOGVEIL_PATHS_FILE_MODE",
        ("rotation", "signal_name"): "LOGVEIL_ROTATION_SIGNAL_NAME",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is None:
                continue
            # YAML already turned 0644 into an int; the env form is octal text
            if key == "file_mode" and isinstance(value, int):
                value = format(value, "o")
            os.environ[env_var] = str(value)

    # The legacy SALT variable counts as "already set" for the secret
    if "LOGVEIL_PRIVACY_SECRET" not in os.environ and "SALT" not in os.environ:
        secret = (config_data.get("privacy") or {}).get("secret")
        if secret:
            os.environ["LOGVEIL_PRIVACY_SECRET"] = str(secret)


def use_config_file(config_path: Optional[str]) -> Settings:
    """Point settings at an explicit YAML file and reload."""
    global _config_path
    _config_path = config_path
    return reload_settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
