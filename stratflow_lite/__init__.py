"""stratflow_lite - client-side resilience and scheduling layer for the StratFlow back office.

This package keeps top-level imports light: the heavy pieces (httpx client,
services) live in subpackages and are only imported when used.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized stderr handler when the root logger has none, so that
    early startup messages are visible. Callers may adjust the level later.

    The STRATFLOW_DEBUG environment variable (truthy values: "1", "true", "yes",
    "on") forces DEBUG verbosity regardless of the requested level.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("STRATFLOW_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message  (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


__all__ = ["__version__", "_init_logging"]
