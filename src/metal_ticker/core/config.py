"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from metal_ticker.core.exceptions import ConfigError

DEFAULT_REFRESH_SECONDS = 5 * 60


class SourceConfig(BaseModel):
    """Price page retrieval configuration."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120 Safari/537.36"
    )
    request_timeout: float = 15.0
    follow_redirects: bool = True

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v


class RefreshConfig(BaseModel):
    """Periodic refresh configuration."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: float = DEFAULT_REFRESH_SECONDS
    refresh_on_start: bool = True

    @field_validator("interval_seconds")
    @classmethod
    def interval_at_least_one_second(cls, v: float) -> float:
        if v < 1:
            raise ValueError("interval_seconds must be >= 1")
        return v


class SettingsConfig(BaseModel):
    """Where the custom/visible metal lists are persisted."""

    model_config = ConfigDict(frozen=True)

    path: str = "./data/metal-ticker-settings.yml"


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8000
    api_key: str | None = None

    @field_validator("port")
    @classmethod
    def port_in_range(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


class TickerConfig(BaseModel):
    """Root configuration for metal-ticker."""

    model_config = ConfigDict(frozen=True)

    source: SourceConfig = SourceConfig()
    refresh: RefreshConfig = RefreshConfig()
    settings: SettingsConfig = SettingsConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "METAL_TICKER_",
) -> TickerConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (METAL_TICKER_REFRESH__INTERVAL_SECONDS, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        METAL_TICKER_API__PORT=9000  ->  api.port = 9000
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return TickerConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("METAL_TICKER_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from METAL_TICKER_CONFIG not found: {env_path}",
                context={"field": "METAL_TICKER_CONFIG", "value": env_path},
            )
        return p

    default = Path("metal-ticker.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            nested = target.get(part)
            nested = dict(nested) if isinstance(nested, dict) else {}
            target[part] = nested
            target = nested
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
