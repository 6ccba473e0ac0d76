"""Request and response schemas."""

from .entry import EntryCreate, EntryRead, EntryUpdate
from .summary import GenerationResult, SummaryRead

__all__ = [
    "EntryCreate",
    "EntryRead",
    "EntryUpdate",
    "GenerationResult",
    "SummaryRead",
]
