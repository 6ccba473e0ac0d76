"""Entry schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.entry import EntrySubtype, EntryType


class EntryCreate(BaseModel):
    """Schema for logging a new entry.

    Photos and audio are uploaded to object storage beforehand; only their
    URLs reach this service.
    """

    entry_type: EntryType
    entry_subtype: EntrySubtype | None = None
    text_content: str | None = None
    photo_url: str | None = None
    audio_url: str | None = None
    transcript_text: str | None = None
    created_by: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_payload(self) -> "EntryCreate":
        if self.entry_type == EntryType.TEXT and not (self.text_content or "").strip():
            raise ValueError("text entries require text_content")
        if self.entry_type == EntryType.PHOTO and not self.photo_url:
            raise ValueError("photo entries require photo_url")
        if self.entry_type == EntryType.AUDIO and not self.audio_url:
            raise ValueError("audio entries require audio_url")
        return self


class EntryUpdate(BaseModel):
    """Schema for editing an entry (creates a superseding entry)."""

    text_content: str | None = None
    entry_subtype: EntrySubtype | None = None
    transcript_text: str | None = None
    created_by: str = Field(..., min_length=1)


class EntryRead(BaseModel):
    """Schema for reading an entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    entry_type: EntryType
    entry_subtype: EntrySubtype | None = None
    text_content: str | None = None
    photo_url: str | None = None
    audio_url: str | None = None
    created_by: str
    created_at: datetime | None = None
    is_active: bool | None = True
    parent_entry_id: str | None = None
    superseded_at: datetime | None = None
    entry_metadata: dict[str, Any] | None = Field(default=None, serialization_alias="metadata")
