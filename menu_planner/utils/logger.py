"""
Logging configuration
"""
import logging
import sys
from typing import Optional

from menu_planner.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that are noisy at INFO and only useful while debugging SQL/HTTP
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "anthropic")


def configure_logging(debug: Optional[bool] = None) -> None:
    """Attach a stdout handler to the package logger (idempotent)"""
    if debug is None:
        debug = get_settings().DEBUG

    package_logger = get_logger("menu_planner", debug=debug)
    package_logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


def get_logger(name: str, debug: Optional[bool] = None) -> logging.Logger:
    """Get a configured logger instance"""
    if debug is None:
        debug = get_settings().DEBUG

    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    return logger
