"""Logging configuration for the application."""

import logging
import sys

from app.core.config import get_settings
from app.middleware.request_id import RequestIdFilter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def setup_logging() -> None:
    """Configure application-wide logging.

    Level is settings.log_level when set, else DEBUG when settings.debug
    is True, otherwise INFO. Output goes to stdout; every record carries
    the current request ID.
    """
    settings = get_settings()
    if settings.log_level:
        log_level = logging.getLevelName(settings.log_level.upper())
    else:
        log_level = logging.DEBUG if settings.debug else logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=[handler], force=True)
