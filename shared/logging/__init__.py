from .config import get_logger, setup_logging
from .correlation import (
    CORRELATION_HEADER,
    bind_project_context,
    clear_context,
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
)

__all__ = [
    "CORRELATION_HEADER",
    "setup_logging",
    "get_logger",
    "bind_project_context",
    "clear_context",
    "new_correlation_id",
    "set_correlation_id",
    "get_correlation_id",
]
