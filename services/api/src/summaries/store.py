"""Project metadata and entry access for the summary scheduler.

Every call runs in its own session: reads and writes are atomic per call
but nothing is transactional across calls, so concurrent writers to the
same document are last-write-wins.
"""

from typing import Any, Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.contracts.dto.entry import EntryDTO
from shared.models import Project, ProjectEntry


class SummaryStoreError(Exception):
    """Metadata or entry storage failed."""


class SummaryStore(Protocol):
    """Storage operations the summary scheduler depends on."""

    async def read_project_metadata(
        self, company_id: str, project_id: str
    ) -> dict[str, Any] | None:
        """Return the project's metadata document, ``None`` if the project is unknown."""
        ...

    async def write_project_metadata(
        self, company_id: str, project_id: str, metadata: dict[str, Any]
    ) -> None: ...

    async def list_active_entries(self, company_id: str, project_id: str) -> list[EntryDTO]: ...


class SqlSummaryStore:
    """SummaryStore backed by the projects and project_entries tables."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def read_project_metadata(
        self, company_id: str, project_id: str
    ) -> dict[str, Any] | None:
        query = select(Project.project_metadata).where(
            Project.id == project_id, Project.company_id == company_id
        )
        try:
            async with self._session_maker() as session:
                row = (await session.execute(query)).first()
        except SQLAlchemyError as exc:
            raise SummaryStoreError(f"Failed to read metadata for project {project_id}") from exc

        if row is None:
            return None
        return dict(row[0] or {})

    async def write_project_metadata(
        self, company_id: str, project_id: str, metadata: dict[str, Any]
    ) -> None:
        statement = (
            update(Project)
            .where(Project.id == project_id, Project.company_id == company_id)
            .values(project_metadata=metadata)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as exc:
            raise SummaryStoreError(f"Failed to write metadata for project {project_id}") from exc

        if result.rowcount == 0:
            raise SummaryStoreError(f"Project {project_id} not found for company {company_id}")

    async def list_active_entries(self, company_id: str, project_id: str) -> list[EntryDTO]:
        query = (
            select(ProjectEntry)
            .where(
                ProjectEntry.project_id == project_id,
                ProjectEntry.company_id == company_id,
                or_(ProjectEntry.is_active.is_(None), ProjectEntry.is_active.is_(True)),
            )
            .order_by(ProjectEntry.created_at)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise SummaryStoreError(f"Failed to list entries for project {project_id}") from exc

        return [EntryDTO.from_model(row) for row in rows]
