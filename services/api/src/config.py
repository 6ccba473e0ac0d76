"""API service configuration.

Requires: DATABASE_URL
Optional: OPENAI_API_KEY (without it summary generation fails and the
project stays dirty), summary tuning knobs.
"""

from functools import lru_cache

from pydantic import Field

from shared.config import (
    BaseSettings,
    database_url_field,
    openai_api_key_field,
    openai_base_url_field,
)


class Settings(BaseSettings):
    """API service settings."""

    service_name: str = "api"

    # Required
    database_url: str = database_url_field(required=True)

    # Optional - the service starts without a model key in dev
    openai_api_key: str = openai_api_key_field(required=False)
    openai_base_url: str = openai_base_url_field()
    summary_model: str = Field(default="gpt-4o-mini", description="Chat model for summaries")

    summary_debounce_seconds: float = Field(
        default=45.0,
        gt=0,
        description="Delay after the first qualifying change before generation",
    )
    summary_min_eligible_entries: int = Field(
        default=2,
        ge=1,
        description="Text/audio entries required before generating",
    )
    summary_generation_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound for one generator call",
    )
    summary_request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for the chat completions request",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Validates required env vars on first call.
    Raises ValidationError if DATABASE_URL is missing.
    """
    return Settings()
