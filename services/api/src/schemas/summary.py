"""Summary schemas."""

from datetime import datetime

from pydantic import BaseModel

from ..summaries import (
    GenerationOutcome,
    OutcomeReason,
    OutcomeStatus,
    SummaryMetadata,
    SummaryState,
)


class SummaryRead(BaseModel):
    """Current summaries and scheduling state of a project."""

    ai_summary_artisan: str | None = None
    ai_summary_artisan_short: str | None = None
    ai_summary_artisan_detail: str | None = None
    ai_summary_client: str | None = None
    ai_summary_client_short: str | None = None
    ai_summary_client_detail: str | None = None
    ai_summary_updated_at: datetime | None = None
    ai_summary_state: SummaryState | None = None
    ai_summary_dirty_at: datetime | None = None
    ai_summary_scheduled_for: datetime | None = None

    @classmethod
    def from_metadata(cls, metadata: SummaryMetadata) -> "SummaryRead":
        return cls(
            ai_summary_artisan=metadata.artisan_short,
            ai_summary_artisan_short=metadata.artisan_short,
            ai_summary_artisan_detail=metadata.artisan_detail,
            ai_summary_client=metadata.client_short,
            ai_summary_client_short=metadata.client_short,
            ai_summary_client_detail=metadata.client_detail,
            ai_summary_updated_at=metadata.updated_at,
            ai_summary_state=metadata.state,
            ai_summary_dirty_at=metadata.dirty_at,
            ai_summary_scheduled_for=metadata.scheduled_for,
        )


class GenerationResult(BaseModel):
    """Outcome of a manual generation request."""

    status: OutcomeStatus
    reason: OutcomeReason | None = None
    summary: SummaryRead | None = None

    @classmethod
    def from_outcome(cls, outcome: GenerationOutcome) -> "GenerationResult":
        summary = SummaryRead.from_metadata(outcome.metadata) if outcome.metadata else None
        return cls(status=outcome.status, reason=outcome.reason, summary=summary)
