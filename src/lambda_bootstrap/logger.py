"""
Logging for the runtime bootstrap.

Diagnostics go to stderr; stdout belongs to the user's handler.
"""

import logging
import os
import sys
from typing import Mapping, Optional, Union

from .constants import LOG_LEVEL_ENV

HANDLER_NAME = "lambda_bootstrap"

DEBUG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-5s | %(message)s"


def to_level(level: Union[int, str]) -> int:
    """Turn a level name such as 'debug' into its number; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    return number if isinstance(number, int) else logging.INFO


def get_log_level(environ: Optional[Mapping[str, str]] = None) -> int:
    """Log level from LOG_LEVEL in the given environment (process env by default)."""
    env = os.environ if environ is None else environ
    return to_level(env.get(LOG_LEVEL_ENV, "INFO"))


def setup_logging(level: Union[int, str] = logging.INFO, stream=None) -> logging.Handler:
    """
    Point the root logger at stderr with a format matching the level.

    The bootstrap's handler is found by name, so a repeated call updates its
    level and format instead of stacking a second handler.
    """
    level = to_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    handler = next((h for h in root_logger.handlers if h.name == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.set_name(HANDLER_NAME)
        root_logger.addHandler(handler)
    handler.setFormatter(logging.Formatter(DEBUG_FORMAT if level == logging.DEBUG else DEFAULT_FORMAT))

    # Connection pool chatter drowns the loop's own debug output
    if level == logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.INFO)

    return handler
