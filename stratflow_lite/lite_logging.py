"""
Central logging configuration for stratflow_lite.

Keeps the package's own loggers at INFO (or DEBUG when requested) while
suppressing verbose debug output from the HTTP stack.
"""

import logging
import os
from typing import Optional

# Loggers for the HTTP stack and event loop that are chatty at DEBUG
_NOISY_LOGGERS = ["httpx", "httpcore", "asyncio", "charset_normalizer"]

_PACKAGE_LOGGERS = [
    "stratflow_lite",
    "stratflow_lite.core.expiring_cache",
    "stratflow_lite.core.retry",
    "stratflow_lite.core.error_reporter",
    "stratflow_lite.core.http_client",
    "stratflow_lite.services",
]

# Logger that accepted error events are forwarded to by the console sink
ERROR_EVENTS_LOGGER = "stratflow_lite.errors"


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for stratflow_lite.

    Args:
        debug_mode: Whether to enable debug logging for stratflow_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        STRATFLOW_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        STRATFLOW_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("STRATFLOW_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("STRATFLOW_LOG_LEVEL", "").upper()

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

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s"))
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {name: logging.WARNING for name in _NOISY_LOGGERS}

    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in _PACKAGE_LOGGERS:
        logger_config[module] = package_level
    # Reported errors are always surfaced
    logger_config[ERROR_EVENTS_LOGGER] = logging.WARNING if not final_debug else logging.DEBUG

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info(
            "Debug logging enabled for stratflow_lite modules. HTTP stack debug logs suppressed."
        )
    else:
        root_logger.info("Production logging configuration applied.")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["stratflow_lite", ERROR_EVENTS_LOGGER, "httpx", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
