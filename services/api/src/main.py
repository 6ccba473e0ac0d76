"""API Service - FastAPI with SQLAlchemy."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
import structlog

from shared.clients.chat_completions import ChatCompletionsClient
from shared.logging import CORRELATION_HEADER, new_correlation_id, setup_logging

from . import routers
from .config import Settings, get_settings
from .database import async_session_maker, engine
from .summaries import OpenAISummaryGenerator, SqlSummaryStore, SummaryScheduler


def build_summary_scheduler(settings: Settings) -> SummaryScheduler:
    """Wire the scheduler to the database store and the chat model."""
    client = ChatCompletionsClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.summary_model,
        timeout=settings.summary_request_timeout_seconds,
    )
    return SummaryScheduler(
        store=SqlSummaryStore(async_session_maker),
        generator=OpenAISummaryGenerator(client),
        debounce_seconds=settings.summary_debounce_seconds,
        min_eligible_entries=settings.summary_min_eligible_entries,
        generation_timeout_seconds=settings.summary_generation_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(settings=settings)
    if not settings.openai_api_key:
        structlog.get_logger().warning("summary_model_key_missing")

    app.state.summary_scheduler = build_summary_scheduler(settings)
    yield
    await app.state.summary_scheduler.shutdown()
    await engine.dispose()


app = FastAPI(
    title="Sitelog API",
    description="Worksite logbook entries and AI summaries",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    correlation_id = request.headers.get(CORRELATION_HEADER, new_correlation_id())
    structlog.contextvars.bind_contextvars(
        correlation_id=correlation_id, method=request.method, path=request.url.path
    )

    start = time.time()
    logger = structlog.get_logger()

    try:
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        if response.status_code >= 500:  # noqa: PLR2004
            logger.error(
                "http_request_failed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
        else:
            logger.info(
                "http_request", status_code=response.status_code, duration_ms=round(duration_ms, 2)
            )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
    except Exception as e:
        duration_ms = (time.time() - start) * 1000
        logger.error(
            "http_request_exception",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round(duration_ms, 2),
            exc_info=True,
        )
        raise
    finally:
        structlog.contextvars.unbind_contextvars(
            "correlation_id", "method", "path", "company_id", "project_id"
        )


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Sitelog API",
        "version": "0.1.0",
        "description": "Worksite logbook entries and AI summaries",
    }


app.include_router(routers.health.router)
app.include_router(routers.entries.router, prefix="/api")
app.include_router(routers.summaries.router, prefix="/api")
