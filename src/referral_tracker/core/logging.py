from __future__ import annotations

import logging
import logging.config
from threading import Lock
from typing import Any

import structlog
import structlog.contextvars
import structlog.stdlib

from referral_tracker.core.config import Settings
from referral_tracker.core.constants import SERVICE_NAME

_LOGGING_INITIALISED = False
_LOGGING_LOCK = Lock()


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if isinstance(resolved, str):
        return logging.INFO
    return int(resolved)


def configure_logging(settings: Settings) -> None:
    """Configure structlog + stdlib logging exactly once per process."""

    global _LOGGING_INITIALISED
    if _LOGGING_INITIALISED:
        return

    with _LOGGING_LOCK:
        if _LOGGING_INITIALISED:
            return

        level = _resolve_level(settings.log_level)
        timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
        renderer: Any = (
            structlog.dev.ConsoleRenderer()
            if settings.debug
            else structlog.processors.JSONRenderer()
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                timestamper,
                structlog.processors.dict_tracebacks,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "structlog": {
                        "()": structlog.stdlib.ProcessorFormatter,
                        "foreign_pre_chain": [
                            structlog.contextvars.merge_contextvars,
                            structlog.processors.add_log_level,
                            timestamper,
                        ],
                        "processors": [
                            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                            renderer,
                        ],
                    }
                },
                "handlers": {
                    "default": {
                        "class": "logging.StreamHandler",
                        "formatter": "structlog",
                        "level": level,
                    }
                },
                "loggers": {
                    "": {
                        "handlers": ["default"],
                        "level": level,
                        "propagate": True,
                    },
                },
            }
        )

        structlog.contextvars.bind_contextvars(service=settings.service_name)
        _LOGGING_INITIALISED = True


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context(*keys: str) -> None:
    """Unbind ``keys``, or reset the context to the service name alone."""

    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
        return
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)
