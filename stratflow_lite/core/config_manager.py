"""Configuration management for stratflow_lite."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from stratflow_lite.core.error_reporter import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_MAX_EVENTS_PER_WINDOW,
    DEFAULT_WINDOW_MS,
)
from stratflow_lite.core.expiring_cache import AGGREGATE_TTL_SECONDS, DEFAULT_TTL_SECONDS
from stratflow_lite.core.http_client import DEFAULT_API_BASE_URL, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Skips blank lines and comments, strips single and double quotes from
    values. Returns an empty dict if the file is missing or unreadable.
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


# (environment variable, config key, type)
_ENV_KEYS: list[tuple[str, str, type]] = [
    ("STRATFLOW_API_BASE_URL", "api_base_url", str),
    ("STRATFLOW_API_TOKEN", "api_token", str),
    ("STRATFLOW_API_TIMEOUT", "api_timeout", float),
    ("STRATFLOW_CACHE_TTL_SECONDS", "cache_ttl_seconds", float),
    ("STRATFLOW_AGGREGATE_CACHE_TTL_SECONDS", "aggregate_cache_ttl_seconds", float),
    ("STRATFLOW_RETRY_MAX_ATTEMPTS", "retry_max_attempts", int),
    ("STRATFLOW_RETRY_BACKOFF_MS", "retry_backoff_ms", int),
    ("STRATFLOW_REPORT_MAX_EVENTS", "report_max_events", int),
    ("STRATFLOW_REPORT_WINDOW_MS", "report_window_ms", int),
    ("STRATFLOW_REPORT_BUFFER_SIZE", "report_buffer_size", int),
    ("STRATFLOW_ENV", "environment", str),
]


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file into the environment without overriding existing variables.

        Returns:
            Keys that were set from the file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from STRATFLOW_* environment variables.

        Values that fail to convert are logged and ignored.
        """
        cfg: dict[str, Any] = {}

        for env_name, key, kind in _ENV_KEYS:
            raw = os.environ.get(env_name)
            if not raw:
                continue
            try:
                cfg[key] = kind(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file, then build configuration from the environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute-style objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)


@dataclass
class ClientSettings:
    """Effective settings for the client layer, with explicit defaults."""

    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: Optional[str] = None
    api_timeout: float = DEFAULT_TIMEOUT_SECONDS
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    aggregate_cache_ttl_seconds: float = AGGREGATE_TTL_SECONDS
    retry_max_attempts: int = 3
    retry_backoff_ms: int = 1000
    report_max_events: int = DEFAULT_MAX_EVENTS_PER_WINDOW
    report_window_ms: int = DEFAULT_WINDOW_MS
    report_buffer_size: int = DEFAULT_BUFFER_SIZE
    environment: str = "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_config(cls, config: Any) -> "ClientSettings":
        """Build settings from a dict or attribute-style object, defaulting missing keys."""
        defaults = cls()
        values = {
            name: get_config_value(config, name, getattr(defaults, name))
            for name in asdict(defaults)
        }
        return cls(**values)

    @classmethod
    def from_env(cls, env_file_path: Optional[Path] = None) -> "ClientSettings":
        return cls.from_config(ConfigManager(env_file_path).load_full_config())

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        data = asdict(self)
        if redact and data.get("api_token"):
            data["api_token"] = "***"
        return data
