"""
Recall Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (RECALL_*)
3. Project config (./recall.toml)
4. User config (~/.recall/config.toml)

Environment variable mapping:
    RECALL_NAMESPACE → namespace
    RECALL_BASE_URL → base_url
    RECALL_API_KEY → api_key
    RECALL_TIMEOUT_MS → timeout_ms
    RECALL_RETRY_ATTEMPTS → retries.attempts
    RECALL_RETRY_DELAY_MS → retries.delay_ms

The API key is held as a SecretStr and never appears in repr or logs.
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from recall.core.errors import ConfigError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class RetryPolicy(BaseModel):
    """Fixed-delay retry policy. attempts counts the first try."""

    model_config = {"frozen": True}

    attempts: int = Field(default=1, ge=1)
    delay_ms: int = Field(default=0, ge=0)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class RecallConfig(BaseModel):
    """Root configuration for a remote memory client."""

    model_config = {"frozen": True}

    namespace: str = Field(min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9_-]+$")
    base_url: str = Field(min_length=1)
    api_key: SecretStr
    timeout_ms: int | None = Field(default=None, gt=0)
    retries: RetryPolicy | None = None

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> RecallConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml
        """
        merged = _merge_layers(
            _read_layer(user_path or Path.home() / ".recall" / "config.toml"),
            _read_layer(project_path or Path.cwd() / "recall.toml"),
            _load_from_env(),
            overrides or {},
        )
        _substitute_env_vars(merged)

        try:
            return RecallConfig(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @property
    def timeout_seconds(self) -> float | None:
        if self.timeout_ms is None:
            return None
        return self.timeout_ms / 1000

    def redacted(self) -> dict[str, Any]:
        """Config as a plain dict with the API key masked."""
        data = self.model_dump()
        data["api_key"] = "***" if self.api_key.get_secret_value() else ""
        return data


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _read_layer(path: Path) -> dict[str, Any]:
    """One TOML layer. A missing file is an empty layer."""
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


_ENV_MAPPING: dict[str, tuple[str, ...]] = {
    "RECALL_NAMESPACE": ("namespace",),
    "RECALL_BASE_URL": ("base_url",),
    "RECALL_API_KEY": ("api_key",),
    "RECALL_TIMEOUT_MS": ("timeout_ms",),
    "RECALL_RETRY_ATTEMPTS": ("retries", "attempts"),
    "RECALL_RETRY_DELAY_MS": ("retries", "delay_ms"),
}

# Always kept as strings, even when they look numeric
_STRING_FIELDS = {"namespace", "base_url", "api_key"}


def _load_from_env() -> dict[str, Any]:
    """Load configuration from RECALL_* environment variables."""
    result: dict[str, Any] = {}

    for env_var, path in _ENV_MAPPING.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        target = result
        for section in path[:-1]:
            target = target.setdefault(section, {})
        field = path[-1]
        target[field] = value if field in _STRING_FIELDS else _convert_value(value)

    return result


def _convert_value(value: str) -> Any:
    """Convert string value to int where possible."""
    try:
        return int(value)
    except ValueError:
        return value


def _merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold layers left to right into a new dict; tables merge key by key."""
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if isinstance(value, dict):
                current = merged.get(key)
                merged[key] = _merge_layers(current if isinstance(current, dict) else {}, value)
            else:
                merged[key] = value
    return merged


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(data: dict) -> None:
    """Replace ${VAR} in string values, recursing into tables. Unset vars become ""."""
    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
