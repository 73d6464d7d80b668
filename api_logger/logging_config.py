"""
api-logger: Logging Setup
=========================

What:  Routes emitted records to the standard streams.
How:   Two StreamHandlers on the "api_logger.access" logger, split by level:

           level <  ERROR  → sys.stdout
           level >= ERROR  → sys.stderr

       The handlers format with "%(message)s" only, so each emitted line is
       exactly the JSON document. Package diagnostics ("api_logger.*" other
       than access) keep a conventional timestamped format on stderr.
When:  Call once at process startup. Applications that already configure
       logging can skip it and attach their own handlers to "api_logger.access".
"""

import logging
import sys
from typing import Optional

from api_logger.config import Settings
from api_logger.config import settings as default_settings
from api_logger.middleware.api_logger import ACCESS_LOGGER_NAME

PACKAGE_LOGGER_NAME = "api_logger"


class _BelowLevelFilter(logging.Filter):
    """Passes records strictly below `level`."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the access and diagnostic loggers.

    Idempotent: handlers installed by an earlier call are replaced.

    Returns:
        The access logger.
    """
    settings = settings or default_settings
    level = getattr(logging, settings.log_level, logging.INFO)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.setLevel(level)
    access_logger.propagate = False

    record_format = logging.Formatter("%(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(record_format)
    stdout_handler.addFilter(_BelowLevelFilter(logging.ERROR))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(record_format)
    stderr_handler.setLevel(logging.ERROR)

    access_logger.addHandler(stdout_handler)
    access_logger.addHandler(stderr_handler)

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.handlers.clear()
    package_logger.setLevel(logging.DEBUG if settings.debug else level)
    diagnostics = logging.StreamHandler(sys.stderr)
    diagnostics.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    package_logger.addHandler(diagnostics)

    return access_logger
