"""Configuration management for dashcal."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Union

from .models import ICalSourceConfig, OAuthSourceConfig, parse_source_config
from .refresher import DEFAULT_REFRESH_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


def _int_from_env(name: str) -> int | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; ignoring", name, raw)
        return None


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Failed to read .env file %s", self.env_file_path, exc_info=True)
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export ") :].strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from environment variables.

        Recognizes:
        - DASHCAL_ICAL_URL -> 'ical_url'
        - DASHCAL_PERIOD -> 'period'
        - DASHCAL_CACHE_DURATION -> 'cache_duration_seconds' (int)
        - DASHCAL_USER_EMAIL -> 'user_email'
        - DASHCAL_WEEK_START -> 'week_start'
        - DASHCAL_DEFAULT_TIMEZONE -> 'default_timezone'
        - DASHCAL_CACHE_DB -> 'cache_db'
        - DASHCAL_REFRESH_INTERVAL -> 'refresh_interval_seconds' (int)

        Returns:
            Configuration dictionary
        """
        cfg: dict[str, Any] = {}

        string_keys = {
            "DASHCAL_ICAL_URL": "ical_url",
            "DASHCAL_PERIOD": "period",
            "DASHCAL_USER_EMAIL": "user_email",
            "DASHCAL_WEEK_START": "week_start",
            "DASHCAL_DEFAULT_TIMEZONE": "default_timezone",
            "DASHCAL_CACHE_DB": "cache_db",
        }
        for env_name, key in string_keys.items():
            value = os.environ.get(env_name)
            if value:
                cfg[key] = value.strip()

        cache_duration = _int_from_env("DASHCAL_CACHE_DURATION")
        if cache_duration is not None:
            cfg["cache_duration_seconds"] = cache_duration

        refresh = _int_from_env("DASHCAL_REFRESH_INTERVAL")
        if refresh is not None:
            cfg["refresh_interval_seconds"] = refresh

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        Returns:
            Configuration dictionary
        """
        self.load_env_file()
        return self.build_config_from_env()

    def build_source_config(
        self, cfg: dict[str, Any] | None = None
    ) -> Union[ICalSourceConfig, OAuthSourceConfig]:
        """Validate the source-related keys of a configuration dict.

        Raises:
            ConfigurationError: If the configuration does not describe a valid source
        """
        cfg = cfg if cfg is not None else self.load_full_config()
        source_keys = (
            "kind",
            "ical_url",
            "access_token",
            "refresh_token",
            "selected_calendar_ids",
            "period",
            "cache_duration_seconds",
            "user_email",
            "week_start",
        )
        return parse_source_config({key: cfg[key] for key in source_keys if key in cfg})


def get_refresh_interval(cfg: dict[str, Any]) -> int:
    """Refresh interval in seconds; non-positive values select the default."""
    interval = cfg.get("refresh_interval_seconds")
    if isinstance(interval, int) and interval > 0:
        return interval
    return DEFAULT_REFRESH_INTERVAL_SECONDS
