"""Database models package."""

from .base import Base
from .company import Company
from .entry import EntrySubtype, EntryType, ProjectEntry
from .project import Project, ProjectStatus

__all__ = [
    "Base",
    "Company",
    "EntrySubtype",
    "EntryType",
    "Project",
    "ProjectEntry",
    "ProjectStatus",
]
