"""Debounced background regeneration of project summaries.

Entry mutations mark a project's summaries dirty and arm one delayed
trigger per project; the trigger (or a manual request) runs a single
generation procedure guarded against concurrent runs for the same project.

Guarantees are in-process only. The in-flight set and the timer registry
live on the scheduler instance, so a second server instance or a restart
is not covered: a project left in ``generating`` by a crashed process stays
there (every trigger returns ``already_generating``) until the stored state
is reset by hand, and two instances can generate the same project
concurrently (their merges are last-write-wins).
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, NamedTuple

import structlog

from shared.contracts.dto.entry import is_eligible_entry_type

from .generator import SummaryGenerator, placeholder_summaries
from .metadata import (
    GeneratedSummaries,
    SummaryMetadata,
    SummaryState,
    extract_summary_metadata,
    merge_generated_summaries,
    with_summary_fields,
)
from .store import SummaryStore, SummaryStoreError

logger = structlog.get_logger()

DEFAULT_DEBOUNCE_SECONDS = 45.0
DEFAULT_MIN_ELIGIBLE_ENTRIES = 2
DEFAULT_GENERATION_TIMEOUT_SECONDS = 120.0

# A scheduled run this close to its due time is not considered early
DUE_TOLERANCE = timedelta(seconds=1)


class GenerationMode(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class OutcomeStatus(str, Enum):
    GENERATED = "generated"
    BLOCKED = "blocked"
    SKIPPED = "skipped"


class OutcomeReason(str, Enum):
    NOT_ENOUGH_ENTRIES = "not_enough_entries"
    ALREADY_GENERATING = "already_generating"
    FETCH_FAILED = "fetch_failed"
    METADATA_MISSING = "metadata_missing"
    NOT_SCHEDULED = "not_scheduled"
    NOT_DUE = "not_due"
    UPDATE_FAILED = "update_failed"
    GENERATION_FAILED = "generation_failed"


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of one generation attempt."""

    status: OutcomeStatus
    reason: OutcomeReason | None = None
    metadata: SummaryMetadata | None = None

    @classmethod
    def generated(cls, metadata: SummaryMetadata) -> "GenerationOutcome":
        return cls(status=OutcomeStatus.GENERATED, metadata=metadata)

    @classmethod
    def blocked(cls, metadata: SummaryMetadata) -> "GenerationOutcome":
        return cls(
            status=OutcomeStatus.BLOCKED,
            reason=OutcomeReason.NOT_ENOUGH_ENTRIES,
            metadata=metadata,
        )

    @classmethod
    def skipped(cls, reason: OutcomeReason) -> "GenerationOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)


class ProjectKey(NamedTuple):
    """Tenant-scoped project identifier keying all in-process state."""

    company_id: str
    project_id: str

    def __str__(self) -> str:
        return f"{self.company_id}:{self.project_id}"


class SummaryScheduler:
    """Owns the debounce timers and the concurrency guard for summaries.

    Create one instance at process startup and call ``shutdown`` on exit.
    """

    def __init__(
        self,
        store: SummaryStore,
        generator: SummaryGenerator,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        min_eligible_entries: int = DEFAULT_MIN_ELIGIBLE_ENTRIES,
        generation_timeout_seconds: float = DEFAULT_GENERATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self._debounce = timedelta(seconds=debounce_seconds)
        self._min_eligible_entries = min_eligible_entries
        self._generation_timeout = generation_timeout_seconds
        self._now = clock or (lambda: datetime.now(UTC))

        self._timers: dict[ProjectKey, asyncio.Task[None]] = {}
        self._in_flight: set[ProjectKey] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def has_pending_timer(self, project_id: str, company_id: str) -> bool:
        task = self._timers.get(ProjectKey(company_id, project_id))
        return task is not None and not task.done()

    @property
    def pending_timer_count(self) -> int:
        return sum(1 for task in self._timers.values() if not task.done())

    def is_generating(self, project_id: str, company_id: str) -> bool:
        return ProjectKey(company_id, project_id) in self._in_flight

    # ------------------------------------------------------------------
    # Entry notifications
    # ------------------------------------------------------------------

    async def notify_entry_changed(self, project_id: str, company_id: str, entry_type: str) -> None:
        """Mark summaries dirty after an entry mutation and arm the debounce timer.

        Fire-and-forget: failures are logged, never raised.
        """
        if not is_eligible_entry_type(entry_type):
            return

        key = ProjectKey(company_id, project_id)
        log = logger.bind(project_id=project_id, company_id=company_id, entry_type=str(entry_type))

        try:
            document = await self._store.read_project_metadata(company_id, project_id)
        except SummaryStoreError as exc:
            log.error("summary_schedule_read_failed", error=str(exc))
            return

        if document is None:
            log.warning("summary_schedule_project_missing")
            return

        now = self._now()
        current = extract_summary_metadata(document)
        existing = current.scheduled_for
        # Keep an armed deadline so a burst of edits cannot postpone generation forever
        scheduled_for = existing if existing and existing > now else now + self._debounce
        if current.effective_state is SummaryState.GENERATING:
            next_state = SummaryState.GENERATING
        else:
            next_state = SummaryState.SCHEDULED

        updated = with_summary_fields(
            document,
            state=next_state,
            dirty_at=now,
            last_entry_at=now,
            scheduled_for=scheduled_for,
        )
        try:
            await self._store.write_project_metadata(company_id, project_id, updated)
        except SummaryStoreError as exc:
            log.error("summary_schedule_write_failed", error=str(exc))
            return

        log.info(
            "summary_marked_dirty",
            state=next_state.value,
            scheduled_for=scheduled_for.isoformat(),
        )

        # The in-flight generation reschedules itself when it sees the newer last_entry_at
        if next_state is SummaryState.GENERATING:
            return

        self._arm_timer(key, scheduled_for)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def trigger_generation(
        self,
        project_id: str,
        company_id: str,
        mode: GenerationMode | str = GenerationMode.MANUAL,
    ) -> GenerationOutcome:
        """Run one generation attempt for a project.

        Manual and timer-driven requests share this path. The outcome is
        always returned, never raised.
        """
        mode = GenerationMode(mode)
        key = ProjectKey(company_id, project_id)
        log = logger.bind(project_id=project_id, company_id=company_id, mode=mode.value)

        if key in self._in_flight:
            log.warning("summary_generation_in_progress")
            return GenerationOutcome.skipped(OutcomeReason.ALREADY_GENERATING)

        self._in_flight.add(key)
        try:
            if mode is GenerationMode.MANUAL:
                self._clear_timer(key)
            return await self._generate(key, mode, log)
        finally:
            self._in_flight.discard(key)

    async def _generate(
        self, key: ProjectKey, mode: GenerationMode, log: Any
    ) -> GenerationOutcome:
        company_id, project_id = key

        try:
            document = await self._store.read_project_metadata(company_id, project_id)
        except SummaryStoreError as exc:
            log.error("summary_metadata_read_failed", error=str(exc))
            return GenerationOutcome.skipped(OutcomeReason.FETCH_FAILED)

        if document is None:
            log.warning("summary_generation_skipped", reason=OutcomeReason.METADATA_MISSING.value)
            return GenerationOutcome.skipped(OutcomeReason.METADATA_MISSING)

        current = extract_summary_metadata(document)
        state = current.effective_state

        # Left behind by another caller or a crashed process
        if state is SummaryState.GENERATING:
            log.warning("summary_generation_marked_in_progress")
            return GenerationOutcome.skipped(OutcomeReason.ALREADY_GENERATING)

        if mode is GenerationMode.SCHEDULED:
            if state not in (SummaryState.SCHEDULED, SummaryState.DIRTY):
                log.info(
                    "summary_generation_skipped",
                    reason=OutcomeReason.NOT_SCHEDULED.value,
                    state=state.value,
                )
                return GenerationOutcome.skipped(OutcomeReason.NOT_SCHEDULED)

            scheduled_for = current.scheduled_for
            if scheduled_for and scheduled_for > self._now() + DUE_TOLERANCE:
                self._arm_timer(key, scheduled_for)
                log.info(
                    "summary_generation_skipped",
                    reason=OutcomeReason.NOT_DUE.value,
                    scheduled_for=scheduled_for.isoformat(),
                )
                return GenerationOutcome.skipped(OutcomeReason.NOT_DUE)

        started_at = self._now()
        in_progress = with_summary_fields(
            document,
            state=SummaryState.GENERATING,
            generation_started_at=started_at,
        )
        try:
            await self._store.write_project_metadata(company_id, project_id, in_progress)
        except SummaryStoreError as exc:
            log.error("summary_mark_generating_failed", error=str(exc))
            return GenerationOutcome.skipped(OutcomeReason.UPDATE_FAILED)

        try:
            entries = await self._store.list_active_entries(company_id, project_id)
        except SummaryStoreError as exc:
            log.error("summary_entries_fetch_failed", error=str(exc))
            await self._revert_to_dirty(key, in_progress, log)
            return GenerationOutcome.skipped(OutcomeReason.FETCH_FAILED)

        entries = [entry for entry in entries if entry.is_active]

        if not entries:
            summaries = placeholder_summaries(self._now())
        else:
            eligible_count = sum(1 for entry in entries if entry.is_eligible)
            if eligible_count < self._min_eligible_entries:
                return await self._block(key, in_progress, eligible_count, log)

            try:
                summaries = await asyncio.wait_for(
                    self._generator.generate(entries), timeout=self._generation_timeout
                )
            except Exception as exc:
                log.error(
                    "summary_generation_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await self._revert_to_dirty(key, in_progress, log)
                return GenerationOutcome.skipped(OutcomeReason.GENERATION_FAILED)

        return await self._store_generated(key, in_progress, started_at, summaries, log)

    async def _block(
        self, key: ProjectKey, in_progress: dict[str, Any], eligible_count: int, log: Any
    ) -> GenerationOutcome:
        blocked = with_summary_fields(
            in_progress,
            state=SummaryState.BLOCKED,
            scheduled_for=None,
            generation_started_at=None,
        )
        try:
            await self._store.write_project_metadata(key.company_id, key.project_id, blocked)
        except SummaryStoreError as exc:
            log.error("summary_mark_blocked_failed", error=str(exc))
            return GenerationOutcome.skipped(OutcomeReason.UPDATE_FAILED)

        log.info(
            "summary_generation_blocked",
            reason=OutcomeReason.NOT_ENOUGH_ENTRIES.value,
            eligible_count=eligible_count,
        )
        return GenerationOutcome.blocked(extract_summary_metadata(blocked))

    async def _revert_to_dirty(
        self, key: ProjectKey, in_progress: dict[str, Any], log: Any
    ) -> None:
        # No retry is scheduled: the next eligible mutation or a manual call retries
        failed = with_summary_fields(
            in_progress,
            state=SummaryState.DIRTY,
            scheduled_for=None,
            generation_started_at=None,
        )
        try:
            await self._store.write_project_metadata(key.company_id, key.project_id, failed)
        except SummaryStoreError as exc:
            log.error("summary_mark_dirty_failed", error=str(exc))

    async def _store_generated(
        self,
        key: ProjectKey,
        in_progress: dict[str, Any],
        started_at: datetime,
        summaries: GeneratedSummaries,
        log: Any,
    ) -> GenerationOutcome:
        # Entries may have been added while the model was running
        try:
            latest = await self._store.read_project_metadata(key.company_id, key.project_id)
        except SummaryStoreError as exc:
            log.error("summary_metadata_refresh_failed", error=str(exc))
            latest = None

        base = latest if latest is not None else in_progress
        latest_summary = extract_summary_metadata(base)
        last_entry_at = latest_summary.last_entry_at

        merged = merge_generated_summaries(base, summaries)
        next_schedule: datetime | None = None
        if last_entry_at is not None and last_entry_at > started_at:
            next_schedule = max(last_entry_at + self._debounce, self._now())
            merged = with_summary_fields(
                merged,
                state=SummaryState.SCHEDULED,
                dirty_at=latest_summary.dirty_at or last_entry_at,
                scheduled_for=next_schedule,
            )

        try:
            await self._store.write_project_metadata(key.company_id, key.project_id, merged)
        except SummaryStoreError as exc:
            log.error("summary_persist_failed", error=str(exc))
            return GenerationOutcome.skipped(OutcomeReason.UPDATE_FAILED)

        if next_schedule is not None:
            self._arm_timer(key, next_schedule)
            log.info("summary_generated_rescheduled", scheduled_for=next_schedule.isoformat())
        else:
            log.info("summary_generated")

        return GenerationOutcome.generated(extract_summary_metadata(merged))

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm_timer(self, key: ProjectKey, scheduled_for: datetime) -> None:
        """Arm the delayed trigger for a project unless one is already armed."""
        if self.has_pending_timer(key.project_id, key.company_id):
            return

        delay = max(0.0, (scheduled_for - self._now()).total_seconds())
        self._timers[key] = asyncio.create_task(
            self._fire_after(key, delay), name=f"summary-timer:{key}"
        )
        logger.info(
            "summary_timer_armed",
            project_id=key.project_id,
            company_id=key.company_id,
            scheduled_for=scheduled_for.isoformat(),
            delay_seconds=round(delay, 3),
        )

    def _clear_timer(self, key: ProjectKey) -> None:
        task = self._timers.pop(key, None)
        if task is not None and not task.done():
            task.cancel()
            logger.info(
                "summary_timer_cancelled", project_id=key.project_id, company_id=key.company_id
            )

    async def _fire_after(self, key: ProjectKey, delay: float) -> None:
        await asyncio.sleep(delay)
        # Once fired, the run can no longer be cancelled through the registry
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]

        try:
            outcome = await self.trigger_generation(
                key.project_id, key.company_id, GenerationMode.SCHEDULED
            )
        except Exception as exc:
            logger.error(
                "summary_background_generation_failed",
                project_id=key.project_id,
                company_id=key.company_id,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return

        logger.debug(
            "summary_timer_fired",
            project_id=key.project_id,
            company_id=key.company_id,
            status=outcome.status.value,
            reason=outcome.reason.value if outcome.reason else None,
        )

    async def shutdown(self) -> None:
        """Cancel every pending timer."""
        tasks = list(self._timers.values())
        self._timers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("summary_scheduler_stopped", cancelled_timers=len(tasks))
