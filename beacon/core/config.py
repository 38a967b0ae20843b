"""
Beacon Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (BEACON_*)
3. Project config (./beacon.toml)
4. User config (~/.beacon/config.toml)
5. Defaults (hardcoded)

Environment variable mapping:
    BEACON_ROUTES_HOME → routes.home
    BEACON_REMINDERS_HOUR → reminders.hour
    BEACON_TRAY_DB_PATH → tray.db_path
    BEACON_LOGGING_CONSOLE_LEVEL → logging.console_level
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from beacon.core.errors import ConfigError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class CodecConfig(BaseModel):
    """Envelope codec limits and extra discriminants."""

    max_payload_bytes: int = Field(default=4096, gt=0)
    extra_kinds: list[str] = Field(default_factory=list)


class RoutesConfig(BaseModel):
    """Navigation targets for tapped notifications."""

    home: str = "/home"
    overrides: dict[str, str] = Field(default_factory=dict)  # kind → route


class ReminderConfig(BaseModel):
    """When task-deadline reminders fire (civil time of the caller's zone)."""

    hour: int = Field(default=9, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    days_before: int = Field(default=1, ge=1)


class RegistryConfig(BaseModel):
    """Purposes tried when rebuilding the registry from the tray."""

    purposes: list[str] = Field(
        default_factory=lambda: ["before", "deadline", "default"]
    )


class TrayConfig(BaseModel):
    """Local tray database used by the CLI adapter."""

    db_path: str = "~/.beacon/tray.db"


class LoggingConfig(BaseModel):
    """Log file location and verbosity."""

    dir: str = "~/.beacon/logs"
    console_level: str = "WARNING"
    log_events: bool = True


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BeaconConfig(BaseModel):
    """Root configuration for Beacon."""

    codec: CodecConfig = Field(default_factory=CodecConfig)
    routes: RoutesConfig = Field(default_factory=RoutesConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    tray: TrayConfig = Field(default_factory=TrayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> BeaconConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        user_config_path = user_path or get_beacon_home() / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        project_config_path = project_path or Path.cwd() / "beacon.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        _deep_merge(merged, _load_from_env())

        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return BeaconConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def get_tray_path(self) -> Path:
        """Resolved path of the SQLite tray database."""
        return Path(self.tray.db_path).expanduser()

    def get_log_dir(self) -> Path:
        """Resolved log directory."""
        return Path(self.logging.dir).expanduser()


def get_beacon_home() -> Path:
    """Get the Beacon home directory (~/.beacon)."""
    return Path.home() / ".beacon"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_ENV_MAPPING: dict[str, tuple[str, str]] = {
    "BEACON_ROUTES_HOME": ("routes", "home"),
    "BEACON_REMINDERS_HOUR": ("reminders", "hour"),
    "BEACON_REMINDERS_MINUTE": ("reminders", "minute"),
    "BEACON_REMINDERS_DAYS_BEFORE": ("reminders", "days_before"),
    "BEACON_CODEC_MAX_PAYLOAD_BYTES": ("codec", "max_payload_bytes"),
    "BEACON_TRAY_DB_PATH": ("tray", "db_path"),
    "BEACON_LOGGING_DIR": ("logging", "dir"),
    "BEACON_LOGGING_CONSOLE_LEVEL": ("logging", "console_level"),
}

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from BEACON_* environment variables."""
    result: dict[str, Any] = {}
    for env_var, (section, key) in _ENV_MAPPING.items():
        value = os.environ.get(env_var)
        if value is not None:
            result.setdefault(section, {})[key] = _convert_value(value)
    return result


def _convert_value(value: str) -> Any:
    """Convert an env string to int where it looks like one; pydantic does the rest."""
    try:
        return int(value)
    except ValueError:
        return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _expand(value: str) -> str:
    return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _expand(value)
        elif isinstance(value, list):
            data[key] = [_expand(v) if isinstance(v, str) else v for v in value]
