"""Project model."""

from enum import Enum

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProjectStatus(str, Enum):
    """Worksite lifecycle status."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Project(Base):
    """Project model - one worksite logbook.

    The ``metadata`` column is a free-form JSON document. The summary
    scheduler keeps its ``ai_summary_*`` keys there next to unrelated keys.
    """

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(255), ForeignKey("companies.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(50), default=ProjectStatus.PLANNED.value)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    project_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
