"""Tests for the child assessment draft/submit state machine."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import RequestContext
from app.models.assessment import (
    AssessmentStatus,
    ChildAssessmentInstance,
    ChildAssessmentRow,
    ChildRowStatus,
)
from app.models.audit_event import AuditEvent
from app.models.program import ActivityState, CompletionStatus
from app.services.errors import (
    AssessmentAlreadySubmittedError,
    AssessmentNotFoundError,
    AssessmentPermissionError,
    AssessmentValidationError,
)
from app.services.submission import DRAFT_SAVED, SUBMITTED, SaveAction, SubmissionService


def full_answers(*children) -> dict:
    return {str(child.id): {"q1": "2", "q2": "3"} for child in children}


async def get_rows(session: AsyncSession, instance_id: int) -> dict[int, ChildAssessmentRow]:
    result = await session.execute(
        select(ChildAssessmentRow).where(ChildAssessmentRow.instance_id == instance_id)
    )
    return {row.child_id: row for row in result.scalars().all()}


async def remove_from_roster(session: AsyncSession, membership) -> None:
    membership.status = "removed"
    await session.commit()


class TestDraftSave:
    """Tests for saving drafts."""

    @pytest.mark.asyncio
    async def test_draft_moves_instance_in_progress(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        service = SubmissionService(async_session)

        result = await service.save_child(
            child_instance.id, {str(ana.id): {"q1": "1"}}, SaveAction.DRAFT, ctx
        )

        assert result.status == AssessmentStatus.IN_PROGRESS
        assert result.message == DRAFT_SAVED
        assert result.submitted_at is None
        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].answers == {"q1": "1"}
        assert rows[ana.id].status == ChildRowStatus.ACTIVE
        assert rows[ana.id].frozen_age_group == "preschool"
        assert rows[ana.id].instrument_id == child_instance.instrument_id

    @pytest.mark.asyncio
    async def test_saving_same_draft_twice_keeps_one_row_per_child(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, _ = roster["Bo"]
        payload = full_answers(ana, bo)
        service = SubmissionService(async_session)

        await service.save_child(child_instance.id, payload, SaveAction.DRAFT, ctx)
        await service.save_child(child_instance.id, payload, SaveAction.DRAFT, ctx)

        count = await async_session.scalar(
            select(func.count())
            .select_from(ChildAssessmentRow)
            .where(ChildAssessmentRow.instance_id == child_instance.id)
        )
        assert count == 2

    @pytest.mark.asyncio
    async def test_last_write_wins_per_row(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        service = SubmissionService(async_session)

        await service.save_child(
            child_instance.id, {str(ana.id): {"q1": "1", "q2": "1"}}, SaveAction.DRAFT, ctx
        )
        await service.save_child(
            child_instance.id, {str(ana.id): {"q1": "4"}}, SaveAction.DRAFT, ctx
        )

        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].answers == {"q1": "4"}

    @pytest.mark.asyncio
    async def test_unknown_children_are_dropped(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        payload = {str(ana.id): {"q1": "1"}, "99999": {"q1": "2"}}

        await SubmissionService(async_session).save_child(
            child_instance.id, payload, SaveAction.DRAFT, ctx
        )

        rows = await get_rows(async_session, child_instance.id)
        assert set(rows) == {ana.id}

    @pytest.mark.asyncio
    async def test_values_outside_the_instrument_are_dropped(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        payload = {str(ana.id): {"q1": "2", "q2": "banana", "not_a_question": "x"}}

        await SubmissionService(async_session).save_child(
            child_instance.id, payload, SaveAction.DRAFT, ctx
        )

        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].answers == {"q1": "2"}

    @pytest.mark.asyncio
    async def test_posted_age_group_is_frozen_once(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        service = SubmissionService(async_session)

        await service.save_child(
            child_instance.id,
            {str(ana.id): {"q1": "1", "_age_group": "toddler"}},
            SaveAction.DRAFT,
            ctx,
        )
        await service.save_child(
            child_instance.id,
            {str(ana.id): {"q1": "1", "_age_group": "k2"}},
            SaveAction.DRAFT,
            ctx,
        )

        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].frozen_age_group == "toddler"


class TestSubmit:
    """Tests for final submission."""

    @pytest.mark.asyncio
    async def test_incomplete_submit_keeps_answers_as_draft(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        """Third child missing question 2 blocks submit but nothing is lost."""
        ana, _ = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]
        payload = full_answers(ana, bo)
        payload[str(cy.id)] = {"q1": "1"}

        with pytest.raises(AssessmentValidationError) as exc_info:
            await SubmissionService(async_session).save_child(
                child_instance.id, payload, SaveAction.SUBMIT, ctx
            )

        assert [(m.subject_id, m.question_key) for m in exc_info.value.missing] == [
            (cy.id, "q2")
        ]
        instance = await async_session.get(ChildAssessmentInstance, child_instance.id)
        assert instance.status == AssessmentStatus.IN_PROGRESS
        assert instance.submitted_at is None
        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].answers == {"q1": "2", "q2": "3"}
        assert rows[bo.id].answers == {"q1": "2", "q2": "3"}
        assert rows[cy.id].answers == {"q1": "1"}

    @pytest.mark.asyncio
    async def test_invalid_answers_never_submit(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]
        payload = full_answers(bo, cy)
        payload[str(ana.id)] = {"q1": "banana", "q2": "99", "not_a_question": "x"}

        with pytest.raises(AssessmentValidationError) as exc_info:
            await SubmissionService(async_session).save_child(
                child_instance.id, payload, SaveAction.SUBMIT, ctx
            )

        assert [(m.subject_id, m.question_key) for m in exc_info.value.missing] == [
            (ana.id, "q1"),
            (ana.id, "q2"),
        ]
        instance = await async_session.get(ChildAssessmentInstance, child_instance.id)
        assert instance.status == AssessmentStatus.IN_PROGRESS
        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].answers == {}

    @pytest.mark.asyncio
    async def test_children_never_posted_still_block_submit(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]

        with pytest.raises(AssessmentValidationError) as exc_info:
            await SubmissionService(async_session).save_child(
                child_instance.id, full_answers(ana, bo), SaveAction.SUBMIT, ctx
            )

        assert {m.subject_id for m in exc_info.value.missing} == {cy.id}

    @pytest.mark.asyncio
    async def test_complete_submit(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        children = [child for child, _ in roster.values()]

        result = await SubmissionService(async_session).save_child(
            child_instance.id, full_answers(*children), SaveAction.SUBMIT, ctx
        )

        assert result.status == AssessmentStatus.SUBMITTED
        assert result.message == SUBMITTED
        assert result.submitted_at is not None
        instance = await async_session.get(ChildAssessmentInstance, child_instance.id)
        assert instance.status == AssessmentStatus.SUBMITTED
        assert instance.submitted_at is not None

    @pytest.mark.asyncio
    async def test_submit_writes_audit_event_and_completes_activity(
        self,
        async_session: AsyncSession,
        child_instance,
        child_activity,
        enrollment,
        roster,
        ctx,
    ) -> None:
        children = [child for child, _ in roster.values()]

        await SubmissionService(async_session).save_child(
            child_instance.id, full_answers(*children), SaveAction.SUBMIT, ctx
        )

        events = (
            await async_session.execute(
                select(AuditEvent).where(AuditEvent.action == "child_assessment.submitted")
            )
        ).scalars().all()
        assert len(events) == 1
        assert events[0].entity_id == child_instance.id
        assert events[0].actor_id == ctx.user_id
        assert events[0].event_metadata["rows"] == 3
        assert events[0].event_metadata["phase"] == "pre"

        state = (
            await async_session.execute(
                select(ActivityState)
                .where(ActivityState.enrollment_id == enrollment.id)
                .where(ActivityState.activity_id == child_activity.id)
            )
        ).scalar_one()
        assert state.completion_status == CompletionStatus.COMPLETE
        assert state.completion_percent == 100

    @pytest.mark.asyncio
    async def test_submitted_instance_is_immutable(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        children = [child for child, _ in roster.values()]
        service = SubmissionService(async_session)
        result = await service.save_child(
            child_instance.id, full_answers(*children), SaveAction.SUBMIT, ctx
        )
        submitted_at = result.submitted_at

        for action in (SaveAction.DRAFT, SaveAction.SUBMIT):
            with pytest.raises(AssessmentAlreadySubmittedError):
                await service.save_child(
                    child_instance.id, {str(ana.id): {"q1": "0", "q2": "0"}}, action, ctx
                )

        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].answers == {"q1": "2", "q2": "3"}
        instance = await async_session.get(ChildAssessmentInstance, child_instance.id)
        assert instance.submitted_at == submitted_at


class TestRosterChangesAtSubmit:
    """Roster reconciliation as part of every save."""

    @pytest.mark.asyncio
    async def test_child_removed_mid_edit_is_stale_and_exempt(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, bo_membership = roster["Bo"]
        cy, _ = roster["Cy"]
        await remove_from_roster(async_session, bo_membership)

        payload = full_answers(ana, cy)
        payload[str(bo.id)] = {"q1": "1"}
        result = await SubmissionService(async_session).save_child(
            child_instance.id, payload, SaveAction.SUBMIT, ctx
        )

        assert result.status == AssessmentStatus.SUBMITTED
        rows = await get_rows(async_session, child_instance.id)
        assert rows[bo.id].status == ChildRowStatus.STALE_AT_SUBMIT
        assert rows[bo.id].answers == {"q1": "1"}

    @pytest.mark.asyncio
    async def test_active_unanswered_child_still_blocks(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, bo_membership = roster["Bo"]
        cy, _ = roster["Cy"]
        await remove_from_roster(async_session, bo_membership)

        payload = full_answers(ana)
        payload[str(bo.id)] = {"q1": "1"}
        payload[str(cy.id)] = {}

        with pytest.raises(AssessmentValidationError) as exc_info:
            await SubmissionService(async_session).save_child(
                child_instance.id, payload, SaveAction.SUBMIT, ctx
            )

        assert {m.subject_id for m in exc_info.value.missing} == {cy.id}

    @pytest.mark.asyncio
    async def test_saved_row_of_removed_child_is_retired(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, ana_membership = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]
        service = SubmissionService(async_session)
        await service.save_child(
            child_instance.id, {str(ana.id): {"q1": "1"}}, SaveAction.DRAFT, ctx
        )
        await remove_from_roster(async_session, ana_membership)

        result = await service.save_child(
            child_instance.id, full_answers(bo, cy), SaveAction.SUBMIT, ctx
        )

        assert result.status == AssessmentStatus.SUBMITTED
        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].status == ChildRowStatus.NOT_IN_CLASSROOM
        assert rows[ana.id].answers == {"q1": "1"}

    @pytest.mark.asyncio
    async def test_readded_child_is_restored(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, ana_membership = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]
        service = SubmissionService(async_session)
        await service.save_child(
            child_instance.id, {str(ana.id): {"q1": "1"}}, SaveAction.DRAFT, ctx
        )
        await remove_from_roster(async_session, ana_membership)
        await service.save_child(child_instance.id, {}, SaveAction.DRAFT, ctx)

        ana_membership.status = "active"
        await async_session.commit()

        with pytest.raises(AssessmentValidationError) as exc_info:
            await service.save_child(
                child_instance.id, full_answers(bo, cy), SaveAction.SUBMIT, ctx
            )

        assert [(m.subject_id, m.question_key) for m in exc_info.value.missing] == [
            (ana.id, "q2")
        ]
        rows = await get_rows(async_session, child_instance.id)
        assert rows[ana.id].status == ChildRowStatus.ACTIVE


class TestSkips:
    """Skipped children need a reason and nothing else."""

    @pytest.mark.asyncio
    async def test_skip_with_reason_does_not_block(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]
        payload = full_answers(ana, bo)
        payload[str(cy.id)] = {"_skip": "1", "_skip_reason": "absent"}

        result = await SubmissionService(async_session).save_child(
            child_instance.id, payload, SaveAction.SUBMIT, ctx
        )

        assert result.status == AssessmentStatus.SUBMITTED
        rows = await get_rows(async_session, child_instance.id)
        assert rows[cy.id].status == ChildRowStatus.SKIPPED
        assert rows[cy.id].skip_reason == "absent"

    @pytest.mark.asyncio
    async def test_skip_without_reason_blocks(
        self, async_session: AsyncSession, child_instance, roster, ctx
    ) -> None:
        ana, _ = roster["Ana"]
        bo, _ = roster["Bo"]
        cy, _ = roster["Cy"]
        payload = full_answers(ana, bo)
        payload[str(cy.id)] = {"_skip": "1", "_skip_reason": ""}

        with pytest.raises(AssessmentValidationError) as exc_info:
            await SubmissionService(async_session).save_child(
                child_instance.id, payload, SaveAction.SUBMIT, ctx
            )

        missing = exc_info.value.missing
        assert [(m.subject_id, m.reason) for m in missing] == [(cy.id, "skip_reason_required")]


class TestAccess:
    @pytest.mark.asyncio
    async def test_unknown_instance(self, async_session: AsyncSession, ctx) -> None:
        with pytest.raises(AssessmentNotFoundError):
            await SubmissionService(async_session).save_child(9999, {}, SaveAction.DRAFT, ctx)

    @pytest.mark.asyncio
    async def test_other_user_is_rejected(
        self, async_session: AsyncSession, child_instance, roster, other_ctx
    ) -> None:
        with pytest.raises(AssessmentPermissionError):
            await SubmissionService(async_session).save_child(
                child_instance.id, {}, SaveAction.DRAFT, other_ctx
            )

    @pytest.mark.asyncio
    async def test_manager_may_save(
        self, async_session: AsyncSession, child_instance, roster
    ) -> None:
        manager = RequestContext(user_id=99, roles=frozenset(settings.manage_roles[:1]))

        result = await SubmissionService(async_session).save_child(
            child_instance.id, {}, SaveAction.DRAFT, manager
        )

        assert result.status == AssessmentStatus.IN_PROGRESS
