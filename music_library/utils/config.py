"""Configuration management using Pydantic Settings with YAML support."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = Field(4000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_format: bool = True
    file: str | None = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def file_path(self) -> Path | None:
        return Path(self.file).expanduser() if self.file else None


class Settings(BaseSettings):
    """Main service settings."""

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_",
        env_nested_delimiter="__",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Path | str = "config.yaml") -> Settings:
    """Load configuration from a YAML file.

    Sections missing from the file are filled from LIBRARY_* environment
    variables, then from defaults. ${VAR} references inside YAML values
    are expanded.
    """
    path = Path(config_path)

    if path.exists():
        with open(path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    yaml_config = _expand_env_vars(yaml_config)

    return Settings(**yaml_config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ${VAR} patterns in config values."""
    if isinstance(obj, str):
        for var in ENV_VAR_PATTERN.findall(obj):
            obj = obj.replace(f"${{{var}}}", os.environ.get(var, ""))
        return obj
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def save_config(settings: Settings, config_path: Path | str = "config.yaml") -> None:
    """Save configuration to YAML file."""
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = settings.model_dump(mode="json")

    with open(path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
