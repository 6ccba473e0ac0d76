"""AI summary scheduling and generation."""

from .generator import OpenAISummaryGenerator, SummaryGenerationError, SummaryGenerator
from .metadata import GeneratedSummaries, SummaryMetadata, SummaryState
from .scheduler import (
    GenerationMode,
    GenerationOutcome,
    OutcomeReason,
    OutcomeStatus,
    SummaryScheduler,
)
from .store import SqlSummaryStore, SummaryStore, SummaryStoreError

__all__ = [
    "GeneratedSummaries",
    "GenerationMode",
    "GenerationOutcome",
    "OpenAISummaryGenerator",
    "OutcomeReason",
    "OutcomeStatus",
    "SqlSummaryStore",
    "SummaryGenerationError",
    "SummaryGenerator",
    "SummaryMetadata",
    "SummaryScheduler",
    "SummaryState",
    "SummaryStore",
    "SummaryStoreError",
]
