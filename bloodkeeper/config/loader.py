"""
Configuration management and loading.

Reads bot settings from an optional YAML file and environment variables.
Environment values (including a local .env file) override the file.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from bloodkeeper.core.ledger import DEFAULT_CAP
from bloodkeeper.storage.db import DEFAULT_DB_PATH

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Environment variable -> config field
ENV_OVERRIDES = {
    "BLOOD_CAP": "cap",
    "DB_PATH": "db_path",
    "TZIMISCE_BOT_ID": "roll_bot_id",
    "BLOOD_CHANNEL_ID": "channel_id",
    "DISCORD_GUILD_ID": "guild_id",
    "LOW_LEVEL_WARNING": "low_level_warning",
    "LOG_LEVEL": "log_level",
    "LOG_FILE": "log_file",
}

INT_FIELDS = {"cap", "low_level_warning", "history_limit", "history_display"}
ID_FIELDS = {"roll_bot_id", "channel_id", "guild_id"}


@dataclass(frozen=True)
class BotConfig:
    """Complete bot configuration."""
    cap: int = DEFAULT_CAP
    db_path: str = DEFAULT_DB_PATH
    roll_bot_id: Optional[str] = None
    channel_id: Optional[str] = None
    guild_id: Optional[str] = None
    low_level_warning: int = 20
    history_limit: int = 10
    history_display: int = 5
    log_level: str = "INFO"
    log_file: Optional[str] = None
    token: Optional[str] = None

    def __post_init__(self):
        """Validate configuration values."""
        if self.cap <= 0:
            raise ValueError("cap must be > 0")
        if not 0 <= self.low_level_warning <= self.cap:
            raise ValueError("low_level_warning must be between 0 and cap")
        if self.history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        if self.history_display <= 0:
            raise ValueError("history_display must be > 0")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {sorted(LOG_LEVELS)}")
        if not self.db_path:
            raise ValueError("db_path cannot be empty")

    def require_discord(self) -> None:
        """Check the settings needed to connect to Discord are present.

        Raises:
            ValueError: If the token, roll bot id or channel id is missing
        """
        missing = []
        if not self.token:
            missing.append("DISCORD_BOT_TOKEN")
        if not self.roll_bot_id:
            missing.append("roll_bot_id (TZIMISCE_BOT_ID)")
        if not self.channel_id:
            missing.append("channel_id (BLOOD_CHANNEL_ID)")
        if missing:
            raise ValueError(f"Missing required settings: {', '.join(missing)}")


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> BotConfig:
    """Load and validate bot configuration.

    Args:
        path: Optional path to a YAML configuration file
        env: Environment mapping; defaults to os.environ after loading .env

    Returns:
        Validated BotConfig object

    Raises:
        FileNotFoundError: If path is given and the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_load_yaml(path))

    if env is None:
        load_dotenv()
        env = os.environ

    for env_key, field_name in ENV_OVERRIDES.items():
        raw = env.get(env_key)
        if raw:
            values[field_name] = _coerce(field_name, raw, env_key)

    config = BotConfig(**values)
    token = env.get("DISCORD_BOT_TOKEN")
    if token:
        config = replace(config, token=token)
    return config


def _load_yaml(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration file must contain a mapping")

    # The token is a secret and only ever comes from the environment
    allowed_keys = {f.name for f in fields(BotConfig)} - {"token"}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return {key: _coerce(key, value, key) for key, value in raw_config.items()}


def _coerce(field_name: str, value: Any, source: str) -> Any:
    """Convert a raw YAML or environment value to the field's type."""
    if value is None:
        return None
    if field_name in INT_FIELDS:
        if isinstance(value, bool):
            raise ValueError(f"'{source}' must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"'{source}' must be an integer, got {value!r}")
    if field_name in ID_FIELDS:
        # Snowflake ids are kept as strings to avoid float/int surprises from YAML
        return str(value).strip()
    if field_name == "log_level":
        return str(value).upper()
    return str(value)
