"""Tests for the summary scheduling state machine."""

import asyncio
from datetime import timedelta

import pytest

from shared.models import EntryType
from src.summaries import (
    GenerationMode,
    OutcomeReason,
    OutcomeStatus,
    SummaryScheduler,
    SummaryState,
)
from src.summaries.generator import EMPTY_ARTISAN_SHORT
from src.summaries.metadata import with_summary_fields

COMPANY_ID = "company-1"
PROJECT_ID = "project-1"
DEBOUNCE = timedelta(seconds=45)


async def notify(scheduler, entry_type=EntryType.TEXT, project_id=PROJECT_ID, company_id=COMPANY_ID):
    await scheduler.notify_entry_changed(project_id, company_id, entry_type.value)


class TestNotifyEntryChanged:
    @pytest.mark.asyncio
    async def test_photo_changes_are_ignored(self, scheduler, store):
        await notify(scheduler, EntryType.PHOTO)

        assert store.writes == []
        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_marks_scheduled_and_arms_timer(self, scheduler, store, clock):
        now = clock()
        await notify(scheduler)

        summary = store.summary()
        assert summary.state is SummaryState.SCHEDULED
        assert summary.scheduled_for == now + DEBOUNCE
        assert summary.dirty_at == now
        assert summary.last_entry_at == now
        assert scheduler.has_pending_timer(PROJECT_ID, COMPANY_ID)

    @pytest.mark.asyncio
    async def test_audio_changes_are_eligible(self, scheduler, store):
        await notify(scheduler, EntryType.AUDIO)

        assert store.summary().state is SummaryState.SCHEDULED

    @pytest.mark.asyncio
    async def test_burst_keeps_first_deadline_and_one_timer(self, scheduler, store, clock):
        first_call = clock()
        await notify(scheduler)
        clock.advance(10)
        await notify(scheduler)
        clock.advance(20)
        await notify(scheduler)

        summary = store.summary()
        assert summary.scheduled_for == first_call + DEBOUNCE
        assert summary.last_entry_at == clock()
        assert scheduler.pending_timer_count == 1
        assert len(store.writes) == 3  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_expired_deadline_opens_new_window(self, scheduler, store, clock):
        await notify(scheduler)
        later = clock.advance(60)
        await notify(scheduler)

        assert store.summary().scheduled_for == later + DEBOUNCE
        assert scheduler.pending_timer_count == 1

    @pytest.mark.asyncio
    async def test_keeps_generating_state_without_timer(self, scheduler, store, clock):
        store.add_project(metadata=with_summary_fields({}, state=SummaryState.GENERATING))

        await notify(scheduler)

        summary = store.summary()
        assert summary.state is SummaryState.GENERATING
        assert summary.last_entry_at == clock()
        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_read_failure_is_swallowed(self, scheduler, store):
        store.fail_reads = True

        await notify(scheduler)

        assert store.writes == []
        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_write_failure_arms_no_timer(self, scheduler, store):
        store.fail_writes = True

        await notify(scheduler)

        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_unknown_project_is_ignored(self, scheduler, store):
        await notify(scheduler, project_id="missing")

        assert store.writes == []
        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_unrelated_metadata_keys_survive(self, scheduler, store):
        store.add_project(metadata={"client_name": "Mme Martin"})

        await notify(scheduler)

        assert store.document()["client_name"] == "Mme Martin"

    @pytest.mark.asyncio
    async def test_timers_are_scoped_by_company(self, scheduler, store):
        store.add_project(company_id="company-2")

        await notify(scheduler, company_id="company-2")

        assert scheduler.has_pending_timer(PROJECT_ID, "company-2")
        assert not scheduler.has_pending_timer(PROJECT_ID, COMPANY_ID)
        assert store.summary().state is None


class TestManualGeneration:
    @pytest.mark.asyncio
    async def test_generates_with_two_eligible_entries(self, scheduler, store, generator, clock):
        store.add_entry()
        store.add_entry(EntryType.AUDIO, text_content="Transcript")

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID, GenerationMode.MANUAL)

        assert outcome.status is OutcomeStatus.GENERATED
        assert outcome.metadata.artisan_short == "Artisan short (2 entries)"
        assert len(generator.calls) == 1

        summary = store.summary()
        assert summary.state is SummaryState.READY
        assert summary.client_detail == "Client detail"
        assert summary.updated_at == clock()
        assert summary.scheduled_for is None
        assert summary.dirty_at is None
        assert summary.generation_started_at is None
        assert store.document()["ai_summary_artisan"] == "Artisan short (2 entries)"
        assert not scheduler.is_generating(PROJECT_ID, COMPANY_ID)

    @pytest.mark.asyncio
    async def test_passes_full_history_to_generator(self, scheduler, store, generator):
        entries = [store.add_entry(), store.add_entry(EntryType.PHOTO), store.add_entry()]

        await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert [e.id for e in generator.calls[0]] == [e.id for e in entries]

    @pytest.mark.asyncio
    async def test_single_eligible_entry_blocks(self, scheduler, store, generator):
        store.add_entry()
        store.add_entry(EntryType.PHOTO)
        store.add_entry(EntryType.PHOTO)
        store.add_project(
            metadata=with_summary_fields(
                {}, state=SummaryState.SCHEDULED, scheduled_for=store.clock() + DEBOUNCE
            )
        )

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.BLOCKED
        assert outcome.reason is OutcomeReason.NOT_ENOUGH_ENTRIES
        assert generator.calls == []
        summary = store.summary()
        assert summary.state is SummaryState.BLOCKED
        assert summary.scheduled_for is None
        assert summary.generation_started_at is None

    @pytest.mark.asyncio
    async def test_superseded_entries_do_not_count(self, scheduler, store, generator):
        store.add_entry()
        store.add_entry(is_active=False)

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.BLOCKED

    @pytest.mark.asyncio
    async def test_empty_history_writes_placeholder(self, scheduler, store, generator):
        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.GENERATED
        assert outcome.metadata.artisan_short == EMPTY_ARTISAN_SHORT
        assert generator.calls == []
        assert store.summary().state is SummaryState.READY

    @pytest.mark.asyncio
    async def test_concurrent_manual_calls_generate_once(self, scheduler, store, generator):
        store.add_entry()
        store.add_entry()
        generator.delay = 0.05

        first, second = await asyncio.gather(
            scheduler.trigger_generation(PROJECT_ID, COMPANY_ID),
            scheduler.trigger_generation(PROJECT_ID, COMPANY_ID),
        )

        statuses = sorted([first.status.value, second.status.value])
        assert statuses == ["generated", "skipped"]
        skipped = first if first.status is OutcomeStatus.SKIPPED else second
        assert skipped.reason is OutcomeReason.ALREADY_GENERATING
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_stale_generating_state_is_skipped(self, scheduler, store, generator):
        store.add_project(metadata=with_summary_fields({}, state=SummaryState.GENERATING))
        store.add_entry()
        store.add_entry()

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.reason is OutcomeReason.ALREADY_GENERATING
        assert store.writes == []
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_manual_cancels_pending_timer(self, scheduler, store):
        store.add_entry()
        store.add_entry()
        await notify(scheduler)
        assert scheduler.pending_timer_count == 1

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.GENERATED
        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_unknown_project_is_skipped(self, scheduler):
        outcome = await scheduler.trigger_generation("missing", COMPANY_ID)

        assert outcome.status is OutcomeStatus.SKIPPED
        assert outcome.reason is OutcomeReason.METADATA_MISSING

    @pytest.mark.asyncio
    async def test_metadata_read_failure_is_skipped(self, scheduler, store):
        store.fail_reads = True

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.reason is OutcomeReason.FETCH_FAILED
        assert store.writes == []
        assert not scheduler.is_generating(PROJECT_ID, COMPANY_ID)

    @pytest.mark.asyncio
    async def test_generating_write_failure_is_skipped(self, scheduler, store, generator):
        store.add_entry()
        store.add_entry()
        store.fail_writes = True

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.reason is OutcomeReason.UPDATE_FAILED
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_entry_fetch_failure_reverts_to_dirty(self, scheduler, store, generator):
        store.fail_entries = True

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.reason is OutcomeReason.FETCH_FAILED
        assert store.summary().state is SummaryState.DIRTY
        assert generator.calls == []


class TestGenerationFailure:
    @pytest.mark.asyncio
    async def test_failure_keeps_previous_variants(self, scheduler, store, generator, clock):
        previous = with_summary_fields(
            {"client_name": "Mme Martin"},
            state=SummaryState.SCHEDULED,
            artisan_short="Old artisan short",
            client_detail="Old client detail",
            updated_at=clock() - timedelta(days=1),
            scheduled_for=clock(),
        )
        store.add_project(metadata=previous)
        store.add_entry()
        store.add_entry()
        generator.error = RuntimeError("model unavailable")

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.SKIPPED
        assert outcome.reason is OutcomeReason.GENERATION_FAILED

        document = store.document()
        summary = store.summary()
        assert summary.state is SummaryState.DIRTY
        assert summary.scheduled_for is None
        assert summary.generation_started_at is None
        assert summary.artisan_short == "Old artisan short"
        assert summary.client_detail == "Old client detail"
        assert summary.updated_at == clock() - timedelta(days=1)
        assert document["client_name"] == "Mme Martin"
        assert scheduler.pending_timer_count == 0

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, store, generator, clock):
        scheduler = SummaryScheduler(
            store, generator, generation_timeout_seconds=0.01, clock=clock
        )
        store.add_entry()
        store.add_entry()
        generator.delay = 1.0

        try:
            outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)
        finally:
            await scheduler.shutdown()

        assert outcome.reason is OutcomeReason.GENERATION_FAILED
        assert store.summary().state is SummaryState.DIRTY


class TestPostGenerationRace:
    @pytest.mark.asyncio
    async def test_entry_during_generation_reschedules(self, scheduler, store, generator, clock):
        store.add_entry()
        store.add_entry()

        async def add_entry_mid_generation():
            clock.advance(10)
            store.add_entry()
            await notify(scheduler)

        generator.during_generation = add_entry_mid_generation

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.GENERATED
        summary = store.summary()
        assert summary.state is SummaryState.SCHEDULED
        assert summary.last_entry_at == clock()
        assert summary.scheduled_for == clock() + DEBOUNCE
        assert summary.dirty_at == clock()
        assert summary.generation_started_at is None
        assert summary.artisan_short == "Artisan short (2 entries)"
        assert scheduler.has_pending_timer(PROJECT_ID, COMPANY_ID)

    @pytest.mark.asyncio
    async def test_refresh_failure_falls_back_to_in_progress_document(
        self, scheduler, store, generator
    ):
        store.add_entry()
        store.add_entry()

        async def break_reads():
            store.fail_reads = True

        generator.during_generation = break_reads

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.status is OutcomeStatus.GENERATED
        assert store.summary().state is SummaryState.READY

    @pytest.mark.asyncio
    async def test_final_write_failure_is_skipped(self, scheduler, store, generator):
        store.add_entry()
        store.add_entry()

        async def break_writes():
            store.fail_writes = True

        generator.during_generation = break_writes

        outcome = await scheduler.trigger_generation(PROJECT_ID, COMPANY_ID)

        assert outcome.reason is OutcomeReason.UPDATE_FAILED
        assert not scheduler.is_generating(PROJECT_ID, COMPANY_ID)


class TestScheduledGeneration:
    @pytest.mark.asyncio
    async def test_ready_project_is_not_scheduled(self, scheduler, store, generator):
        store.add_project(metadata=with_summary_fields({}, state=SummaryState.READY))

        outcome = await scheduler.trigger_generation(
            PROJECT_ID, COMPANY_ID, GenerationMode.SCHEDULED
        )

        assert outcome.reason is OutcomeReason.NOT_SCHEDULED
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_early_trigger_rearms_timer(self, scheduler, store, generator, clock):
        store.add_project(
            metadata=with_summary_fields(
                {},
                state=SummaryState.SCHEDULED,
                scheduled_for=clock() + timedelta(seconds=30),
            )
        )

        outcome = await scheduler.trigger_generation(
            PROJECT_ID, COMPANY_ID, GenerationMode.SCHEDULED
        )

        assert outcome.reason is OutcomeReason.NOT_DUE
        assert scheduler.has_pending_timer(PROJECT_ID, COMPANY_ID)
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_due_dirty_project_generates(self, scheduler, store, clock):
        store.add_project(
            metadata=with_summary_fields(
                {}, state=SummaryState.DIRTY, scheduled_for=clock() + timedelta(milliseconds=500)
            )
        )
        store.add_entry()
        store.add_entry()

        outcome = await scheduler.trigger_generation(
            PROJECT_ID, COMPANY_ID, GenerationMode.SCHEDULED
        )

        assert outcome.status is OutcomeStatus.GENERATED

    @pytest.mark.asyncio
    async def test_timer_fires_generation(self, store, generator):
        scheduler = SummaryScheduler(store, generator, debounce_seconds=0.05)
        store.add_entry()
        store.add_entry()

        try:
            await notify(scheduler)
            await notify(scheduler)
            assert scheduler.pending_timer_count == 1

            await asyncio.sleep(0.3)
        finally:
            await scheduler.shutdown()

        assert len(generator.calls) == 1
        assert store.summary().state is SummaryState.READY
        assert scheduler.pending_timer_count == 0
