"""Project entries router.

Entry mutations notify the summary scheduler after the response is sent.
"""

from datetime import UTC, datetime
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from shared.models import EntryType, Project, ProjectEntry

from ..database import get_async_session
from ..dependencies import get_project, get_summary_scheduler
from ..schemas import EntryCreate, EntryRead, EntryUpdate
from ..summaries import SummaryScheduler

logger = structlog.get_logger()

router = APIRouter(prefix="/projects/{project_id}/entries", tags=["entries"])


def _active_entries_query(project: Project):
    return select(ProjectEntry).where(
        ProjectEntry.project_id == project.id,
        ProjectEntry.company_id == project.company_id,
        or_(ProjectEntry.is_active.is_(None), ProjectEntry.is_active.is_(True)),
    )


@router.get("", response_model=list[EntryRead])
async def list_entries(
    project: Project = Depends(get_project),
    db: AsyncSession = Depends(get_async_session),
) -> list[ProjectEntry]:
    """List active entries in chronological order."""
    result = await db.execute(_active_entries_query(project).order_by(ProjectEntry.created_at))
    return list(result.scalars().all())


@router.post("", response_model=EntryRead, status_code=status.HTTP_201_CREATED)
async def create_entry(
    entry_in: EntryCreate,
    background_tasks: BackgroundTasks,
    project: Project = Depends(get_project),
    db: AsyncSession = Depends(get_async_session),
    scheduler: SummaryScheduler = Depends(get_summary_scheduler),
) -> ProjectEntry:
    """Log a new entry."""
    entry = ProjectEntry(
        id=str(uuid.uuid4()),
        company_id=project.company_id,
        project_id=project.id,
        entry_type=entry_in.entry_type.value,
        entry_subtype=entry_in.entry_subtype.value if entry_in.entry_subtype else None,
        text_content=entry_in.text_content,
        photo_url=entry_in.photo_url,
        audio_url=entry_in.audio_url,
        created_by=entry_in.created_by,
        is_active=True,
        entry_metadata={"transcript_text": entry_in.transcript_text}
        if entry_in.transcript_text
        else None,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    logger.info(
        "entry_created",
        entry_id=entry.id,
        project_id=project.id,
        entry_type=entry.entry_type,
    )

    background_tasks.add_task(
        scheduler.notify_entry_changed, project.id, project.company_id, entry.entry_type
    )
    return entry


@router.patch("/{entry_id}", response_model=EntryRead)
async def edit_entry(
    entry_id: str,
    entry_in: EntryUpdate,
    background_tasks: BackgroundTasks,
    project: Project = Depends(get_project),
    db: AsyncSession = Depends(get_async_session),
    scheduler: SummaryScheduler = Depends(get_summary_scheduler),
) -> ProjectEntry:
    """Edit an entry by superseding it with a new one."""
    result = await db.execute(_active_entries_query(project).where(ProjectEntry.id == entry_id))
    original = result.scalar_one_or_none()
    if not original:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")

    text_content = (
        entry_in.text_content if entry_in.text_content is not None else original.text_content
    )
    if original.entry_type == EntryType.TEXT.value and not (text_content or "").strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Text entries require text_content",
        )

    if "entry_subtype" in entry_in.model_fields_set:
        entry_subtype = entry_in.entry_subtype.value if entry_in.entry_subtype else None
    else:
        entry_subtype = original.entry_subtype

    metadata = dict(original.entry_metadata or {})
    if entry_in.transcript_text is not None:
        metadata["transcript_text"] = entry_in.transcript_text

    original.is_active = False
    original.superseded_at = datetime.now(UTC)

    replacement = ProjectEntry(
        id=str(uuid.uuid4()),
        company_id=project.company_id,
        project_id=project.id,
        entry_type=original.entry_type,
        entry_subtype=entry_subtype,
        text_content=text_content,
        photo_url=original.photo_url,
        audio_url=original.audio_url,
        created_by=entry_in.created_by,
        is_active=True,
        parent_entry_id=original.id,
        entry_metadata=metadata or None,
    )
    db.add(replacement)
    await db.commit()
    await db.refresh(replacement)

    logger.info(
        "entry_superseded",
        entry_id=replacement.id,
        parent_entry_id=original.id,
        project_id=project.id,
    )

    background_tasks.add_task(
        scheduler.notify_entry_changed, project.id, project.company_id, replacement.entry_type
    )
    return replacement
