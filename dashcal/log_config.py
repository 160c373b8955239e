"""
Central logging configuration for dashcal.

Keeps package loggers at the requested verbosity while suppressing the debug
chatter of the HTTP, storage and iCalendar libraries.
"""

import logging
import os
from typing import Optional

# Third-party loggers that are noisy at DEBUG
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "icalendar": logging.INFO,
}

PACKAGE_LOGGERS = [
    "dashcal",
    "dashcal.fetcher",
    "dashcal.parser",
    "dashcal.rrule_expander",
    "dashcal.feed_cache",
    "dashcal.ingestion",
    "dashcal.refresher",
]


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for dashcal and its dependencies.

    Args:
        debug_mode: Whether to enable debug logging for dashcal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        DASHCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        DASHCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("DASHCAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("DASHCAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Preserve the colorized handler installed by dashcal._init_logging
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config = dict(NOISY_LOGGERS)
    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in PACKAGE_LOGGERS:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.debug("Debug logging enabled for dashcal modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["dashcal", *NOISY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
