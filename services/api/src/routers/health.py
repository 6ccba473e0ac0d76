"""Health check router."""

from fastapi import APIRouter, Depends

from ..dependencies import get_summary_scheduler
from ..summaries import SummaryScheduler

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(scheduler: SummaryScheduler = Depends(get_summary_scheduler)) -> dict:
    """Health check endpoint with the summary timer backlog."""
    return {"status": "ok", "pending_summary_timers": scheduler.pending_timer_count}
