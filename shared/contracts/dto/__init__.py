"""Data transfer objects."""

from .entry import ELIGIBLE_ENTRY_TYPES, EntryDTO, is_eligible_entry_type

__all__ = ["ELIGIBLE_ENTRY_TYPES", "EntryDTO", "is_eligible_entry_type"]
