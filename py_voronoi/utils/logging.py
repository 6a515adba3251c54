"""structlog setup shared by applications embedding py_voronoi."""

import logging
import sys
from typing import Optional

import structlog

from ..config import settings


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Route structlog through the standard library logger.

    Args:
        log_level: Level name, defaults to ``settings.log_level``
        log_format: ``json`` or ``console``, defaults to ``settings.log_format``
    """
    level = (log_level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()
    if log_format not in ("json", "console"):
        raise ValueError(f"Unknown log format: {log_format}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (structlog.processors.JSONRenderer() if log_format == "json"
                else structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
