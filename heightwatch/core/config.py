"""Pydantic settings loaded from YAML and the process environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from heightwatch.core.exceptions import ConfigurationError

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")
_DEFAULT_ENV_FILE = Path(".env")

# Environment variable -> (section, field). Environment wins over YAML.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "RPC_URLS": ("endpoints", "rpc_urls"),
    "NODE_URL": ("endpoints", "node_url"),
    "LEVEL_1": ("thresholds", "level_1"),
    "LEVEL_2": ("thresholds", "level_2"),
    "LEVEL_3": ("thresholds", "level_3"),
    "BOT_TOKEN": ("telegram", "bot_token"),
    "CHAT_ID": ("telegram", "chat_id"),
    "STATE_FILE": ("state", "path"),
    "CHECK_INTERVAL_SECS": ("schedule", "interval_secs"),
    "OUTAGE_GRACE_SECS": ("schedule", "outage_grace_secs"),
    "OUTAGE_REPEAT_SECS": ("schedule", "outage_repeat_secs"),
    "PROBE_TIMEOUT_SECS": ("probe", "timeout_secs"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
}


class EndpointsConfig(BaseModel):
    """Peer RPC endpoints and the monitored node."""

    rpc_urls: list[str]
    node_url: str

    @field_validator("rpc_urls", mode="before")
    @classmethod
    def _split_urls(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, list):
            value = [str(v).strip() for v in value if str(v).strip()]
        return value

    @field_validator("rpc_urls")
    @classmethod
    def _require_urls(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one RPC endpoint is required")
        return value

    @field_validator("node_url")
    @classmethod
    def _require_node(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("node URL is required")
        return value


class ThresholdsConfig(BaseModel):
    """Lag cutoffs (in blocks) for alert levels 1-3."""

    level_1: int
    level_2: int
    level_3: int

    @model_validator(mode="after")
    def _non_decreasing(self) -> ThresholdsConfig:
        if not self.level_1 <= self.level_2 <= self.level_3:
            raise ValueError(
                "thresholds must be non-decreasing: "
                f"level_1={self.level_1} level_2={self.level_2} level_3={self.level_3}"
            )
        return self


class TelegramConfig(BaseModel):
    """Telegram bot credentials."""

    bot_token: SecretStr
    chat_id: str
    api_base: str = "https://api.telegram.org"
    timeout_secs: float = 10.0
    command_poll_secs: float = 2.0

    @field_validator("chat_id", mode="before")
    @classmethod
    def _chat_id_as_str(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("chat_id")
    @classmethod
    def _require_chat_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("chat id is required")
        return value

    @field_validator("bot_token")
    @classmethod
    def _require_token(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("bot token is required")
        return value


class ScheduleConfig(BaseModel):
    """Check cadence and outage notification timers, in seconds."""

    interval_secs: float = 15.0
    outage_grace_secs: float = 60.0
    outage_repeat_secs: float = 60.0

    @field_validator("interval_secs", "outage_grace_secs", "outage_repeat_secs")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class ProbeConfig(BaseModel):
    """Height probe HTTP settings."""

    timeout_secs: float = 5.0


class StateConfig(BaseModel):
    """Alert state persistence."""

    path: Path = Path("previous_state.yml")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    endpoints: EndpointsConfig
    thresholds: ThresholdsConfig
    telegram: TelegramConfig
    schedule: ScheduleConfig = ScheduleConfig()
    probe: ProbeConfig = ProbeConfig()
    state: StateConfig = StateConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def worst_case_cycle_secs(self) -> float:
        """Longest a cycle can take: peer fan-out, node request, one send."""
        return 2 * self.probe.timeout_secs + self.telegram.timeout_secs

    @model_validator(mode="after")
    def _timeouts_fit_interval(self) -> Settings:
        interval = self.schedule.interval_secs
        if self.probe.timeout_secs >= interval:
            raise ValueError(
                f"probe timeout ({self.probe.timeout_secs}s) must be shorter "
                f"than the check interval ({interval}s)"
            )
        if self.telegram.timeout_secs >= interval:
            raise ValueError(
                f"telegram timeout ({self.telegram.timeout_secs}s) must be shorter "
                f"than the check interval ({interval}s)"
            )
        return self


def _apply_env(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    """Overlay non-empty environment variables onto the YAML data."""
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(var, "").strip()
        if not value:
            continue
        block = data.get(section)
        if not isinstance(block, dict):
            block = {}
            data[section] = block
        block[key] = value
    return data


def load_settings(
    path: str | Path | None = None,
    env_file: str | Path | None = None,
) -> Settings:
    """Load settings from YAML plus environment and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml; a
            missing file is ignored.
        env_file: dotenv file loaded into the environment first. Defaults to
            .env; variables already set in the environment are kept.

    Returns:
        Parsed Settings instance.

    Raises:
        ConfigurationError: if a required value is missing or invalid.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH
    dotenv_path = Path(env_file) if env_file else _DEFAULT_ENV_FILE

    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"cannot read {config_path}: {exc}") from exc
        if isinstance(raw, dict):
            data = raw

    data = _apply_env(data, dict(os.environ))

    try:
        _settings = Settings(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration:\n{exc}") from exc
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading them if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
