"""Bridge configuration.

Configuration is read once at startup and frozen afterwards. Sources, in
increasing precedence:

1. Model defaults
2. A YAML file (explicit path or TS_BRIDGE_CONFIG)
3. TS_BRIDGE_* environment variables

Example YAML:
    host: ts.example.org
    port: 10011
    user: serveradmin
    password: secret
    groups: ["123456789"]
    onebot:
      api_url: http://127.0.0.1:5700
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError

from .errors import ConfigError

CONFIG_ENV_VAR = "TS_BRIDGE_CONFIG"

DEFAULT_COMMAND_NAMES = ["ts", "谁在ts"]

# Environment variable -> (section, field). None section means top level.
_ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "TS_BRIDGE_HOST": (None, "host"),
    "TS_BRIDGE_PORT": (None, "port"),
    "TS_BRIDGE_SERVER_PORT": (None, "server_port"),
    "TS_BRIDGE_USER": (None, "user"),
    "TS_BRIDGE_PASSWORD": (None, "password"),
    "TS_BRIDGE_NICKNAME": (None, "nickname"),
    "TS_BRIDGE_RECONNECT_ATTEMPTS": (None, "reconnect_attempts"),
    "TS_BRIDGE_RECONNECT_TIMEOUT_MS": (None, "reconnect_timeout_ms"),
    "TS_BRIDGE_RECONNECT_DELAY_MS": (None, "reconnect_delay_ms"),
    "TS_BRIDGE_QUERY_TIMEOUT_MS": (None, "query_timeout_ms"),
    "TS_BRIDGE_DEBUG": (None, "debug"),
    "TS_BRIDGE_GROUPS": (None, "groups"),
    "TS_BRIDGE_ONEBOT_URL": ("onebot", "api_url"),
    "TS_BRIDGE_ONEBOT_TOKEN": ("onebot", "access_token"),
    "TS_BRIDGE_ONEBOT_SECRET": ("onebot", "secret"),
}

_SECRET_FIELDS = {"password", "access_token", "secret"}


class OneBotConfig(BaseModel):
    """Chat host (OneBot v11 HTTP API) settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_url: str | None = None  # None -> messages are only logged
    access_token: str | None = None
    secret: str | None = None  # HMAC secret for inbound webhook signatures
    timeout: float = 10.0


class ServerConfig(BaseModel):
    """HTTP listen address for the webhook server."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)


class BridgeConfig(BaseModel):
    """Immutable process configuration."""

    # Group ids and passwords are often written as bare numbers in YAML
    model_config = ConfigDict(frozen=True, extra="forbid", coerce_numbers_to_str=True)

    # ServerQuery endpoint
    host: str = "localhost"
    port: int = Field(default=10011, ge=1, le=65535)
    server_port: int = Field(default=9987, ge=1, le=65535)
    user: str = ""
    password: str = ""
    nickname: str = "TSBot"

    # Session resilience
    reconnect_attempts: PositiveInt = 3
    reconnect_timeout_ms: PositiveInt = 10_000
    reconnect_delay_ms: int = Field(default=2_000, ge=0)
    query_timeout_ms: PositiveInt = 5_000
    keepalive_interval_s: float = Field(default=240.0, ge=0)

    debug: bool = False

    # Notification targets (chat group ids)
    groups: list[str] = Field(default_factory=list)
    command_names: list[str] = Field(default_factory=lambda: list(DEFAULT_COMMAND_NAMES))

    onebot: OneBotConfig = Field(default_factory=OneBotConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def redacted(self) -> dict[str, Any]:
        """Return the configuration as a dict with secrets masked."""
        return _mask(self.model_dump())


def _mask(data: dict[str, Any]) -> dict[str, Any]:
    masked: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = _mask(value)
        elif key in _SECRET_FIELDS and value:
            masked[key] = "********"
        else:
            masked[key] = value
    return masked


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _apply_env(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    merged = dict(data)
    for env_key, (section, field) in _ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if raw is None:
            continue

        value: Any = raw
        if field == "groups":
            value = [g.strip() for g in raw.split(",") if g.strip()]
        elif field == "debug":
            value = raw.lower() in ("1", "true", "yes", "on")

        if section is None:
            merged[field] = value
        else:
            nested = dict(merged.get(section) or {})
            nested[field] = value
            merged[section] = nested
    return merged


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BridgeConfig:
    """Load and validate the bridge configuration.

    Args:
        path: YAML file to read. Falls back to $TS_BRIDGE_CONFIG when None.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Frozen BridgeConfig

    Raises:
        ConfigError: If the file is unreadable or validation fails
    """
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    config_path = path or environ.get(CONFIG_ENV_VAR)
    if config_path:
        data = _read_yaml(Path(config_path))

    data = _apply_env(data, environ)

    try:
        return BridgeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
