"""Summary fields embedded in a project's metadata document.

The document is the ``projects.metadata`` JSON blob. Summary fields live
under ``ai_summary_*`` keys; every other key belongs to someone else and is
carried forward untouched on each write.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator

KEY_PREFIX = "ai_summary_"

# Written alongside the short variants for readers of the older layout
LEGACY_ARTISAN_KEY = "ai_summary_artisan"
LEGACY_CLIENT_KEY = "ai_summary_client"


class SummaryState(str, Enum):
    """Scheduling state of a project's summaries."""

    IDLE = "idle"
    DIRTY = "dirty"
    SCHEDULED = "scheduled"
    GENERATING = "generating"
    READY = "ready"
    BLOCKED = "blocked"


class GeneratedSummaries(BaseModel):
    """Four text variants produced by one generation."""

    artisan_short: str
    artisan_detail: str
    client_short: str
    client_detail: str
    updated_at: datetime


class SummaryMetadata(BaseModel):
    """Typed view of the summary fields of a metadata document.

    Parsing is lenient: wrong types, unknown states and unparsable
    timestamps read as ``None``.
    """

    state: SummaryState | None = None
    artisan_short: str | None = None
    artisan_detail: str | None = None
    client_short: str | None = None
    client_detail: str | None = None
    updated_at: datetime | None = None
    dirty_at: datetime | None = None
    scheduled_for: datetime | None = None
    last_entry_at: datetime | None = None
    generation_started_at: datetime | None = None

    @property
    def effective_state(self) -> SummaryState:
        return self.state or SummaryState.IDLE

    @field_validator("state", mode="before")
    @classmethod
    def _parse_state(cls, value: Any) -> SummaryState | None:
        if isinstance(value, SummaryState):
            return value
        try:
            return SummaryState(value)
        except ValueError:
            return None

    @field_validator(
        "artisan_short", "artisan_detail", "client_short", "client_detail", mode="before"
    )
    @classmethod
    def _parse_text(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator(
        "updated_at",
        "dirty_at",
        "scheduled_for",
        "last_entry_at",
        "generation_started_at",
        mode="before",
    )
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


SUMMARY_FIELDS = tuple(SummaryMetadata.model_fields)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 value into an aware datetime, ``None`` if unusable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def extract_summary_metadata(document: dict[str, Any] | None) -> SummaryMetadata:
    """Read the summary fields out of a project metadata document."""
    document = document or {}
    values = {field: document.get(KEY_PREFIX + field) for field in SUMMARY_FIELDS}
    if values["client_short"] is None:
        values["client_short"] = document.get(LEGACY_CLIENT_KEY)
    return SummaryMetadata.model_validate(values)


def with_summary_fields(document: dict[str, Any] | None, **fields: Any) -> dict[str, Any]:
    """Return a copy of ``document`` with the given summary fields written.

    Raises:
        KeyError: If a field name is not a summary field.
    """
    updated = dict(document or {})
    for field, value in fields.items():
        if field not in SUMMARY_FIELDS:
            raise KeyError(f"Unknown summary field: {field}")
        updated[KEY_PREFIX + field] = _serialize(value)
    return updated


def merge_generated_summaries(
    document: dict[str, Any] | None, summaries: GeneratedSummaries
) -> dict[str, Any]:
    """Replace the text variants wholesale and mark the summaries ready."""
    merged = with_summary_fields(
        document,
        artisan_short=summaries.artisan_short,
        artisan_detail=summaries.artisan_detail,
        client_short=summaries.client_short,
        client_detail=summaries.client_detail,
        updated_at=summaries.updated_at,
        state=SummaryState.READY,
        dirty_at=None,
        scheduled_for=None,
        generation_started_at=None,
    )
    merged[LEGACY_ARTISAN_KEY] = summaries.artisan_short
    merged[LEGACY_CLIENT_KEY] = summaries.client_short
    return merged
