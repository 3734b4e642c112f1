"""
MUSISCORE - Logging setup shared by the API, the CLI and the worker
"""

import logging
import sys
from typing import Optional

from musiscore.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless DEBUG is on
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "sqlalchemy.engine")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the current process."""
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if not settings.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
