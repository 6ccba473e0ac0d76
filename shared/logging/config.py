"""Structured logging setup shared by every service.

Outputs JSON (production) or colored console lines (development). Format,
level and service name come from explicit arguments, then from a settings
object, then from the environment.
"""

import logging
import os
import sys
from typing import TYPE_CHECKING, Literal

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from shared.config import BaseSettings

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
    settings: "BaseSettings | None" = None,
) -> None:
    """Configure structured logging with structlog.

    Args:
        service_name: Name of the service (e.g., "api").
                     Falls back to settings, SERVICE_NAME env var or "unknown".
        log_format: "json" for production, "console" for dev.
                   Falls back to settings, LOG_FORMAT env var or "console".
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
                  Falls back to settings, LOG_LEVEL env var or "INFO".
        settings: Optional service settings carrying the logging fields.
    """
    if settings is not None:
        service_name = service_name or settings.service_name
        log_format = log_format or settings.log_format
        log_level = log_level or settings.log_level

    service_name = service_name or os.getenv("SERVICE_NAME", "unknown")
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger().info(
        "logging_initialized",
        service=service_name,
        log_format=log_format,
        log_level=log_level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Optional logger name. If not provided, uses the caller's module name.
    """
    return structlog.get_logger(name)
