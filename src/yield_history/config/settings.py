"""
Settings management using Pydantic.

Loads configuration from YAML files and environment variables.
Environment variables override YAML values.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class HistorySettings(BaseModel):
    """Historical series cache and fetch pipeline."""

    api_base_url: str = "https://yields.llama.fi"
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Freshness and windows
    ttl_hours: float = Field(default=24.0, gt=0, description="Age after which a stored series is stale")
    window_days: int = Field(default=90, ge=1, description="Trailing window kept per series and used by Base90")
    tvl_window_days: int = 30
    min_points: int = 7

    # Batch pipeline: one request every 1.5s keeps us under the public API limit
    batch_delay_seconds: float = Field(default=1.5, ge=0)

    # In-memory mirror in front of the backend
    mirror_ttl_seconds: float = Field(default=1.0, ge=0)

    # Quota recovery: first eviction pass removes this many oldest series
    eviction_batch_size: int = Field(default=10, ge=1)

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 3600


class StorageSettings(BaseModel):
    """Persistent backend settings."""

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "data/yield_history.db"
    storage_key: str = "yield-history-cache"
    # Browser localStorage allows ~5MB per origin; same limit here
    quota_bytes: int = Field(default=5_000_000, ge=0, description="0 disables the quota check")
    wal_mode: bool = True


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    log_dir: str = "logs"
    file_enabled: bool = True
    json_enabled: bool = False
    json_file: str = "logs/yield_history_json.jsonl"
    # Rotate JSONL log to prevent unbounded growth.
    # Set to 0 to disable rotation.
    json_max_bytes: int = 10_000_000
    json_backup_count: int = 3


class Settings(BaseSettings):
    """
    Main settings container.

    Loads from YAML file based on environment, then applies env var overrides.
    """

    # Environment
    env: str = Field(default="development", alias="YIELD_ENV")
    testing_mode: bool = False

    # Sub-settings
    history: HistorySettings = Field(default_factory=HistorySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "env_prefix": "YIELD_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def validate_config(self) -> list[str]:
        """
        Check cross-field constraints that pydantic field bounds cannot express.

        Returns:
            List of validation error messages. Empty list means all validations passed.
        """
        errors = []

        if not self.history.api_base_url.startswith(("http://", "https://")):
            errors.append(f"history.api_base_url must be an http(s) URL, got {self.history.api_base_url!r}")

        if self.history.tvl_window_days > self.history.window_days:
            errors.append(
                f"history.tvl_window_days ({self.history.tvl_window_days}) must not exceed "
                f"history.window_days ({self.history.window_days})"
            )

        if self.history.min_points < 1:
            errors.append("history.min_points must be at least 1")

        if self.storage.backend == "sqlite" and not self.storage.path:
            errors.append("storage.path is required for the sqlite backend")

        if not self.storage.storage_key:
            errors.append("storage.storage_key must not be empty")

        return errors

    @classmethod
    def from_yaml(cls, env: str = "development") -> Settings:
        """
        Load settings from config.yaml.

        Falls back to default.yaml deep-merged with {env}.yaml when no
        single config.yaml exists.
        """
        config_dir = Path(__file__).parent
        yaml_file = config_dir / "config.yaml"

        data: dict = {}
        if yaml_file.exists():
            with open(yaml_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            default_file = config_dir / "default.yaml"
            env_file = config_dir / f"{env}.yaml"

            if default_file.exists():
                with open(default_file, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}

            if env_file.exists():
                with open(env_file, encoding="utf-8") as f:
                    env_data = yaml.safe_load(f) or {}
                data = _deep_merge(data, env_data)

        # Short env vars for the two values people change most
        if os.getenv("YIELD_API_BASE_URL"):
            data.setdefault("history", {})["api_base_url"] = os.getenv("YIELD_API_BASE_URL")
        if os.getenv("YIELD_DB_PATH"):
            data.setdefault("storage", {})["path"] = os.getenv("YIELD_DB_PATH")

        data["env"] = env

        # Warn about unknown keys before creating model (helps catch typos in config.yaml)
        _warn_unknown_keys(data, cls)

        return cls(**data)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts, override wins on conflicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _collect_all_keys(data: dict, prefix: str = "") -> set[str]:
    """
    Recursively collect all keys from a nested dict.

    Returns keys in dot-notation format (e.g., "history.batch_delay_seconds").
    """
    keys = set()
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else key
        keys.add(full_key)
        if isinstance(value, dict):
            keys.update(_collect_all_keys(value, full_key))
    return keys


def _collect_model_fields(model_class: type[BaseModel], prefix: str = "") -> set[str]:
    """
    Recursively collect all field names from a Pydantic model.

    Returns field names in dot-notation format.
    """
    fields = set()
    for field_name, field_info in model_class.model_fields.items():
        full_key = f"{prefix}.{field_name}" if prefix else field_name
        fields.add(full_key)

        annotation = field_info.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            fields.update(_collect_model_fields(annotation, full_key))

    return fields


def _warn_unknown_keys(data: dict, model_class: type[BaseModel]) -> None:
    """
    Warn about unknown keys in YAML config that don't match model fields.

    This prevents silent config bugs where typos in key names are ignored.
    """
    yaml_keys = _collect_all_keys(data)
    model_fields = _collect_model_fields(model_class)

    unknown_keys = yaml_keys - model_fields

    if unknown_keys:
        logger.warning(
            f"Unknown configuration keys found (will be ignored due to extra='ignore'): {sorted(unknown_keys)}. "
            f"This may indicate typos in config.yaml or outdated config keys."
        )


@lru_cache(maxsize=4)
def get_settings(env: str | None = None) -> Settings:
    """Get cached settings instance."""
    resolved_env = env or os.getenv("YIELD_ENV", "development")
    return Settings.from_yaml(env=resolved_env)
