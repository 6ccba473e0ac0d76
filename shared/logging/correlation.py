import uuid

import structlog

CORRELATION_HEADER = "X-Correlation-ID"


def new_correlation_id() -> str:
    """Generate a short request correlation ID."""
    return f"req_{uuid.uuid4().hex[:8]}"


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID for current context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def get_correlation_id() -> str | None:
    """Get correlation ID from current context."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


def bind_project_context(company_id: str, project_id: str) -> None:
    """Attach tenant and project to every log line of the current context."""
    structlog.contextvars.bind_contextvars(company_id=company_id, project_id=project_id)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()
