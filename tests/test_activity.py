"""Tests for activity resolution, instance generation and completion."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.init_db import seed_child_instruments, seed_teacher_instrument
from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    ChildAssessmentInstance,
    TeacherAssessmentInstance,
)
from app.models.classroom import ChildTrackSnapshot
from app.models.instrument import ChildInstrument, TeacherInstrument
from app.models.program import Activity, ActivityState, ActivityType, CompletionStatus
from app.services.activity import ActivityProgress, ActivityResolver
from app.services.errors import AssessmentNotFoundError
from tests.conftest import likert_question, make_child_instrument


async def count(session: AsyncSession, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


class TestResolveChildActivity:
    """Tests for activity -> child instance resolution."""

    @pytest.mark.asyncio
    async def test_creates_instance_once(
        self,
        async_session: AsyncSession,
        enrollment,
        classroom,
        child_activity,
        two_question_instrument,
        ctx,
    ) -> None:
        resolver = ActivityResolver(async_session)

        first = await resolver.resolve_child_activity(child_activity.id, ctx)
        second = await resolver.resolve_child_activity(child_activity.id, ctx)

        assert first.instance_id == second.instance_id
        assert first.phase == "pre"
        assert first.instrument_ref.instrument_id == two_question_instrument.id
        instance = await async_session.get(ChildAssessmentInstance, first.instance_id)
        assert instance.classroom_id == classroom.id
        assert instance.instrument_age_band == "preschool"
        assert instance.activity_id == child_activity.id
        assert instance.status == AssessmentStatus.NOT_STARTED
        assert await count(async_session, ChildAssessmentInstance) == 1

    @pytest.mark.asyncio
    async def test_adopts_existing_instance(
        self, async_session: AsyncSession, child_instance, child_activity, ctx
    ) -> None:
        binding = await ActivityResolver(async_session).resolve_child_activity(
            child_activity.id, ctx
        )

        assert binding.instance_id == child_instance.id
        instance = await async_session.get(ChildAssessmentInstance, child_instance.id)
        assert instance.activity_id == child_activity.id

    @pytest.mark.asyncio
    async def test_explicit_instrument_reference(
        self, async_session: AsyncSession, enrollment, track, two_question_instrument, ctx
    ) -> None:
        other = await make_child_instrument(
            async_session, "k2", [likert_question("k1")], name="Pinned"
        )
        activity = Activity(
            track_id=track.id,
            activity_type=ActivityType.CHILD_ASSESSMENT,
            external_ref={"phase": "post", "instrument_id": str(other.id)},
        )
        async_session.add(activity)
        await async_session.commit()

        binding = await ActivityResolver(async_session).resolve_child_activity(activity.id, ctx)

        assert binding.phase == "post"
        assert binding.instrument_ref.instrument_id == other.id

    @pytest.mark.asyncio
    async def test_backfills_missing_fields(
        self,
        async_session: AsyncSession,
        enrollment,
        classroom,
        child_activity,
        two_question_instrument,
        ctx,
    ) -> None:
        instance = ChildAssessmentInstance(
            enrollment_id=enrollment.id,
            track_id=enrollment.track_id,
            phase=AssessmentPhase.PRE,
        )
        async_session.add(instance)
        await async_session.commit()

        binding = await ActivityResolver(async_session).resolve_child_activity(
            child_activity.id, ctx
        )

        assert binding.instance_id == instance.id
        assert instance.classroom_id == classroom.id
        assert instance.instrument_age_band == "preschool"
        assert instance.instrument_id == two_question_instrument.id
        assert instance.instrument_version == "1.0"

    @pytest.mark.asyncio
    async def test_unknown_or_mismatched_activity(
        self, async_session: AsyncSession, enrollment, track, ctx
    ) -> None:
        teacher_activity = Activity(
            track_id=track.id, activity_type=ActivityType.TEACHER_SELF_ASSESSMENT
        )
        async_session.add(teacher_activity)
        await async_session.commit()
        resolver = ActivityResolver(async_session)

        with pytest.raises(AssessmentNotFoundError):
            await resolver.resolve_child_activity(9999, ctx)
        with pytest.raises(AssessmentNotFoundError):
            await resolver.resolve_child_activity(teacher_activity.id, ctx)

    @pytest.mark.asyncio
    async def test_caller_without_enrollment(
        self, async_session: AsyncSession, enrollment, child_activity, other_ctx
    ) -> None:
        with pytest.raises(AssessmentNotFoundError):
            await ActivityResolver(async_session).resolve_child_activity(
                child_activity.id, other_ctx
            )


class TestGenerateChildInstances:
    @pytest.mark.asyncio
    async def test_one_instance_per_assignment(
        self,
        async_session: AsyncSession,
        track,
        enrollment,
        classroom,
        roster,
        two_question_instrument,
    ) -> None:
        resolver = ActivityResolver(async_session)

        assert await resolver.generate_child_instances(track.id) == 1
        assert await resolver.generate_child_instances(track.id) == 0
        assert await resolver.generate_child_instances(track.id, AssessmentPhase.POST) == 1

        instances = (await async_session.execute(select(ChildAssessmentInstance))).scalars().all()
        assert {i.classroom_id for i in instances} == {classroom.id}
        assert all(i.instrument_id == two_question_instrument.id for i in instances)
        assert await count(async_session, ChildTrackSnapshot) == 3


class TestResolveTeacherActivity:
    @pytest.mark.asyncio
    async def test_creates_with_latest_active_instrument(
        self, async_session: AsyncSession, track, enrollment, teacher_instrument, ctx
    ) -> None:
        activity = Activity(
            track_id=track.id,
            activity_type=ActivityType.TEACHER_SELF_ASSESSMENT,
            external_ref={"phase": "pre"},
        )
        async_session.add(activity)
        await async_session.commit()
        resolver = ActivityResolver(async_session)

        first = await resolver.resolve_teacher_activity(activity.id, ctx)
        second = await resolver.resolve_teacher_activity(activity.id, ctx)

        assert first.instance_id == second.instance_id
        assert first.instrument_ref.instrument_id == teacher_instrument.id
        assert first.instrument_ref.version == "2.0"
        assert await count(async_session, TeacherAssessmentInstance) == 1

    @pytest.mark.asyncio
    async def test_adopts_instance_without_activity(
        self, async_session: AsyncSession, track, enrollment, teacher_pre_instance, ctx
    ) -> None:
        activity = Activity(
            track_id=track.id,
            activity_type=ActivityType.TEACHER_SELF_ASSESSMENT,
            external_ref={"phase": "pre"},
        )
        async_session.add(activity)
        await async_session.commit()

        binding = await ActivityResolver(async_session).resolve_teacher_activity(activity.id, ctx)

        assert binding.instance_id == teacher_pre_instance.id
        assert teacher_pre_instance.activity_id == activity.id

    @pytest.mark.asyncio
    async def test_explicit_teacher_instrument(
        self, async_session: AsyncSession, track, enrollment, teacher_instrument, ctx
    ) -> None:
        pinned = TeacherInstrument(
            instrument_key="pilot",
            name="Pilot Self-Assessment",
            version="0.9",
            sections=[],
            status="draft",
        )
        async_session.add(pinned)
        await async_session.commit()
        activity = Activity(
            track_id=track.id,
            activity_type=ActivityType.TEACHER_SELF_ASSESSMENT,
            external_ref={"phase": "post", "teacher_instrument_id": pinned.id},
        )
        async_session.add(activity)
        await async_session.commit()

        binding = await ActivityResolver(async_session).resolve_teacher_activity(activity.id, ctx)

        assert binding.instrument_ref.instrument_id == pinned.id


class TestActivityProgress:
    """Completion bookkeeping on submit."""

    @pytest.mark.asyncio
    async def test_child_activity_waits_for_every_instance(
        self,
        async_session: AsyncSession,
        enrollment,
        child_instance,
        child_activity,
    ) -> None:
        second = ChildAssessmentInstance(
            enrollment_id=enrollment.id,
            track_id=enrollment.track_id,
            phase=AssessmentPhase.PRE,
            status=AssessmentStatus.SUBMITTED,
        )
        async_session.add(second)
        await async_session.commit()
        progress = ActivityProgress(async_session)

        assert await progress.mark_complete(
            enrollment.id, enrollment.track_id, ActivityType.CHILD_ASSESSMENT, "pre"
        ) == 0

        child_instance.status = AssessmentStatus.SUBMITTED
        await async_session.commit()

        assert await progress.mark_complete(
            enrollment.id, enrollment.track_id, ActivityType.CHILD_ASSESSMENT, "pre"
        ) == 1
        state = (await async_session.execute(select(ActivityState))).scalar_one()
        assert state.activity_id == child_activity.id
        assert state.completion_status == CompletionStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_only_matching_phase_is_completed(
        self, async_session: AsyncSession, track, enrollment
    ) -> None:
        async_session.add_all(
            [
                Activity(
                    track_id=track.id,
                    activity_type=ActivityType.TEACHER_SELF_ASSESSMENT,
                    external_ref={"phase": "pre"},
                ),
                Activity(
                    track_id=track.id,
                    activity_type=ActivityType.TEACHER_SELF_ASSESSMENT,
                    external_ref={"phase": "post"},
                ),
            ]
        )
        await async_session.commit()

        updated = await ActivityProgress(async_session).mark_complete(
            enrollment.id, track.id, ActivityType.TEACHER_SELF_ASSESSMENT, "post"
        )

        assert updated == 1


class TestSeeding:
    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, async_session: AsyncSession) -> None:
        created = await seed_child_instruments(async_session)
        teacher = await seed_teacher_instrument(async_session)

        assert [i.instrument_type for i in created] == [
            "children_infant",
            "children_toddler",
            "children_preschool",
            "children_k2",
        ]
        assert teacher is not None
        assert await seed_child_instruments(async_session) == []
        assert await seed_teacher_instrument(async_session) is None
        assert await count(async_session, ChildInstrument) == 4
