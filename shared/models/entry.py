"""Project entry model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class EntryType(str, Enum):
    """Kind of logbook entry."""

    TEXT = "text"
    PHOTO = "photo"
    AUDIO = "audio"


class EntrySubtype(str, Enum):
    """Optional tag on an entry."""

    TASK = "task"
    CLIENT_CHANGE = "client_change"


class ProjectEntry(Base):
    """Timestamped logbook entry.

    Edits never modify a row in place: the edited entry is deactivated and a
    new row points back to it through ``parent_entry_id``.
    """

    __tablename__ = "project_entries"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(255), ForeignKey("companies.id"), index=True)
    project_id: Mapped[str] = mapped_column(String(255), ForeignKey("projects.id"), index=True)

    entry_type: Mapped[str] = mapped_column(String(20))
    entry_subtype: Mapped[str | None] = mapped_column(String(50), nullable=True)

    text_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    audio_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_by: Mapped[str] = mapped_column(String(255))

    # NULL on rows written before soft-deletion existed; treated as active
    is_active: Mapped[bool | None] = mapped_column(Boolean, default=True, nullable=True)
    parent_entry_id: Mapped[str | None] = mapped_column(
        String(255), ForeignKey("project_entries.id"), nullable=True
    )
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Carries transcript_text for audio memos
    entry_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
