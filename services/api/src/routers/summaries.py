"""Project summaries router."""

from fastapi import APIRouter, Depends, Response, status
import structlog

from shared.models import Project

from ..dependencies import get_project, get_summary_scheduler
from ..schemas import GenerationResult, SummaryRead
from ..summaries import GenerationMode, OutcomeReason, OutcomeStatus, SummaryScheduler
from ..summaries.metadata import extract_summary_metadata

logger = structlog.get_logger()

router = APIRouter(prefix="/projects/{project_id}/summaries", tags=["summaries"])

SKIP_STATUS_CODES = {
    OutcomeReason.ALREADY_GENERATING: status.HTTP_409_CONFLICT,
    OutcomeReason.METADATA_MISSING: status.HTTP_404_NOT_FOUND,
}


@router.get("", response_model=SummaryRead)
async def get_summaries(project: Project = Depends(get_project)) -> SummaryRead:
    """Get current summaries and their scheduling state."""
    return SummaryRead.from_metadata(extract_summary_metadata(project.project_metadata))


@router.post("/generate", response_model=GenerationResult)
async def generate_summaries(
    response: Response,
    project: Project = Depends(get_project),
    scheduler: SummaryScheduler = Depends(get_summary_scheduler),
) -> GenerationResult:
    """Regenerate summaries now, superseding any pending scheduled run."""
    outcome = await scheduler.trigger_generation(
        project.id, project.company_id, GenerationMode.MANUAL
    )

    if outcome.status is OutcomeStatus.SKIPPED:
        response.status_code = SKIP_STATUS_CODES.get(outcome.reason, status.HTTP_502_BAD_GATEWAY)
        logger.warning(
            "manual_summary_generation_skipped",
            project_id=project.id,
            reason=outcome.reason.value if outcome.reason else None,
        )

    return GenerationResult.from_outcome(outcome)
