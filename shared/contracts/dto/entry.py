from datetime import datetime

from pydantic import BaseModel, ConfigDict

from shared.models.entry import EntrySubtype, EntryType, ProjectEntry

# Entry types that count toward summary triggering and content
ELIGIBLE_ENTRY_TYPES = frozenset({EntryType.TEXT, EntryType.AUDIO})


class EntryDTO(BaseModel):
    """Active logbook entry as seen by the summary pipeline."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    entry_type: EntryType
    entry_subtype: EntrySubtype | None = None
    text_content: str | None = None
    transcript_text: str | None = None
    photo_url: str | None = None
    audio_url: str | None = None
    created_by: str | None = None
    created_at: datetime
    is_active: bool = True
    parent_entry_id: str | None = None
    superseded_at: datetime | None = None

    @property
    def is_eligible(self) -> bool:
        """Whether this entry counts toward summary generation."""
        return self.is_active and self.entry_type in ELIGIBLE_ENTRY_TYPES

    @classmethod
    def from_model(cls, entry: ProjectEntry) -> "EntryDTO":
        """Build from a row, lifting the transcript out of the metadata blob."""
        metadata = entry.entry_metadata or {}
        transcript = metadata.get("transcript_text")
        subtypes = {subtype.value for subtype in EntrySubtype}
        subtype = entry.entry_subtype if entry.entry_subtype in subtypes else None
        return cls(
            id=entry.id,
            entry_type=EntryType(entry.entry_type),
            entry_subtype=subtype,
            text_content=entry.text_content,
            transcript_text=transcript if isinstance(transcript, str) else None,
            photo_url=entry.photo_url,
            audio_url=entry.audio_url,
            created_by=entry.created_by,
            created_at=entry.created_at,
            is_active=entry.is_active is not False,
            parent_entry_id=entry.parent_entry_id,
            superseded_at=entry.superseded_at,
        )


def is_eligible_entry_type(entry_type: str | EntryType) -> bool:
    """Whether a raw entry type string counts toward summary triggering."""
    try:
        return EntryType(entry_type) in ELIGIBLE_ENTRY_TYPES
    except ValueError:
        return False
