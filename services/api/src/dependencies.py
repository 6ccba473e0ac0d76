"""FastAPI dependencies for tenant scoping and the summary scheduler."""

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.logging import bind_project_context
from shared.models import Project

from .database import get_async_session
from .summaries import SummaryScheduler


async def get_company_id(x_company_id: str = Header(..., alias="X-Company-ID")) -> str:
    """Get the active company from the X-Company-ID header.

    Session validation happens upstream at the identity provider; this
    service only scopes queries by tenant. Raises 422 if the header is missing.
    """
    return x_company_id


async def get_project(
    project_id: str,
    company_id: str = Depends(get_company_id),
    db: AsyncSession = Depends(get_async_session),
) -> Project:
    """Get the project if it belongs to the active company.

    Raises 404 otherwise, without revealing whether it exists elsewhere.
    """
    query = select(Project).where(Project.id == project_id, Project.company_id == company_id)
    result = await db.execute(query)
    project = result.scalar_one_or_none()

    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    bind_project_context(company_id, project_id)
    return project


def get_summary_scheduler(request: Request) -> SummaryScheduler:
    """Get the process-wide scheduler created in the app lifespan."""
    return request.app.state.summary_scheduler
