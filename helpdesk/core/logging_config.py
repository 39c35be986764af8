"""
Logging configuration.

WHY: Every log line carries the request ID set by RequestContextMiddleware,
so a failed upload or a rejected status change can be traced from the
X-Request-ID header a client reports back to the server logs.
"""

import logging
import logging.config
from typing import Optional

from helpdesk.core.config import settings
from helpdesk.middleware.request_context import get_request_context


class RequestIdFilter(logging.Filter):
    """Attach the current request ID (or "-") to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_request_context()
        record.request_id = context.request_id if context else "-"
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for the API process.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_id": {"()": RequestIdFilter},
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["request_id"],
                },
            },
            "loggers": {
                "helpdesk": {
                    "handlers": ["console"],
                    "level": (level or settings.LOG_LEVEL).upper(),
                    "propagate": False,
                },
            },
        }
    )
