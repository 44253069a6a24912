"""Activity to assessment-instance resolution and activity completion."""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.interfaces import ActivityBinding
from app.core.security import RequestContext
from app.instruments.resolution import InstrumentRef, InstrumentResolver
from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    ChildAssessmentInstance,
    TeacherAssessmentInstance,
)
from app.models.classroom import Classroom, TeachingAssignment
from app.models.instrument import TeacherInstrument
from app.models.program import (
    Activity,
    ActivityState,
    ActivityType,
    CompletionStatus,
    Enrollment,
)
from app.services.errors import AssessmentNotFoundError
from app.services.snapshot import SnapshotService
from app.services.stores import (
    SqlClassroomRoster,
    SqlInstrumentRepository,
    SqlTeacherInstrumentRepository,
)

logger = logging.getLogger(__name__)


def _ref_int(ref: dict, key: str) -> int | None:
    try:
        return int(ref[key]) if ref.get(key) not in (None, "") else None
    except (TypeError, ValueError):
        return None


class ActivityResolver:
    """Maps pathway activities onto assessment instances.

    Instances are created on demand. Creation is one flush-and-commit
    that returns the new id, so a caller can always redirect to it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.instruments = SqlInstrumentRepository(session)
        self.resolver = InstrumentResolver(self.instruments, category="children")

    async def _get_activity(self, activity_id: int, activity_type: ActivityType) -> Activity:
        activity = await self.session.get(Activity, activity_id)
        if activity is None or activity.activity_type != activity_type:
            raise AssessmentNotFoundError(f"Activity {activity_id} not found")
        return activity

    async def _find_enrollment(self, user_id: int, track_id: int) -> Enrollment:
        result = await self.session.execute(
            select(Enrollment)
            .where(Enrollment.user_id == user_id)
            .where(Enrollment.track_id == track_id)
            .where(Enrollment.status == "active")
            .limit(1)
        )
        enrollment = result.scalar_one_or_none()
        if enrollment is None:
            raise AssessmentNotFoundError(
                f"User {user_id} has no active enrollment in track {track_id}"
            )
        return enrollment

    async def _first_classroom(self, enrollment_id: int) -> Classroom | None:
        result = await self.session.execute(
            select(Classroom)
            .join(TeachingAssignment, TeachingAssignment.classroom_id == Classroom.id)
            .where(TeachingAssignment.enrollment_id == enrollment_id)
            .order_by(TeachingAssignment.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Child assessments
    # ------------------------------------------------------------------

    async def backfill(
        self, instance: ChildAssessmentInstance, explicit_ref: int | None = None
    ) -> bool:
        """Fill classroom, age band and instrument when they are missing.

        Returns:
            True if anything changed (the caller commits)
        """
        changed = False

        if instance.classroom_id is None:
            classroom = await self._first_classroom(instance.enrollment_id)
            if classroom is not None:
                instance.classroom_id = classroom.id
                changed = True

        if not instance.instrument_age_band and instance.classroom_id is not None:
            classroom = await self.session.get(Classroom, instance.classroom_id)
            if classroom is not None and classroom.age_band:
                instance.instrument_age_band = classroom.age_band
                changed = True

        if instance.instrument_id is None:
            ref = await self.resolver.resolve(instance.instrument_age_band, explicit_ref)
            if ref is not None:
                instance.instrument_id = ref.instrument_id
                instance.instrument_version = ref.version
                changed = True

        if changed:
            await self.session.flush()
            logger.info(f"Backfilled child assessment instance {instance.id}")
        return changed

    async def _find_child_instance(self, *criteria) -> ChildAssessmentInstance | None:
        result = await self.session.execute(
            select(ChildAssessmentInstance)
            .where(*criteria)
            .order_by(ChildAssessmentInstance.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve_child_activity(
        self, activity_id: int, ctx: RequestContext
    ) -> ActivityBinding:
        """Find or create the caller's child assessment for an activity.

        Lookup order: by (enrollment, activity), then by (enrollment,
        track, phase) adopting the activity, then create.

        Raises:
            AssessmentNotFoundError: Unknown activity or no enrollment
        """
        activity = await self._get_activity(activity_id, ActivityType.CHILD_ASSESSMENT)
        enrollment = await self._find_enrollment(ctx.user_id, activity.track_id)
        ref = activity.external_ref or {}
        explicit = _ref_int(ref, "instrument_id")
        phase = AssessmentPhase(activity.phase)

        instance = await self._find_child_instance(
            ChildAssessmentInstance.enrollment_id == enrollment.id,
            ChildAssessmentInstance.activity_id == activity.id,
        )
        if instance is None:
            instance = await self._find_child_instance(
                ChildAssessmentInstance.enrollment_id == enrollment.id,
                ChildAssessmentInstance.track_id == activity.track_id,
                ChildAssessmentInstance.phase == phase,
                ChildAssessmentInstance.activity_id.is_(None),
            )
            if instance is not None:
                instance.activity_id = activity.id

        if instance is not None:
            await self.backfill(instance, explicit)
            await self.session.commit()
        else:
            instance = await self._create_child_instance(enrollment, activity, phase, explicit)

        return ActivityBinding(
            instance_id=instance.id,
            phase=instance.phase,
            instrument_ref=(
                InstrumentRef(instance.instrument_id, instance.instrument_version)
                if instance.instrument_id
                else None
            ),
        )

    async def _create_child_instance(
        self,
        enrollment: Enrollment,
        activity: Activity,
        phase: AssessmentPhase,
        explicit_ref: int | None,
    ) -> ChildAssessmentInstance:
        classroom = await self._first_classroom(enrollment.id)
        age_band = classroom.age_band if classroom else None
        ref = await self.resolver.resolve(age_band, explicit_ref)

        instance = ChildAssessmentInstance(
            enrollment_id=enrollment.id,
            activity_id=activity.id,
            track_id=activity.track_id,
            classroom_id=classroom.id if classroom else None,
            phase=phase,
            instrument_age_band=age_band,
            instrument_id=ref.instrument_id if ref else None,
            instrument_version=ref.version if ref else None,
            status=AssessmentStatus.NOT_STARTED,
        )
        self.session.add(instance)
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request created it first
            await self.session.rollback()
            existing = await self._find_child_instance(
                ChildAssessmentInstance.enrollment_id == enrollment.id,
                ChildAssessmentInstance.activity_id == activity.id,
            )
            if existing is None:
                raise
            return existing

        logger.info(
            f"Created child assessment instance {instance.id} for enrollment "
            f"{enrollment.id} activity {activity.id}"
        )
        return instance

    async def generate_child_instances(
        self, track_id: int, phase: AssessmentPhase = AssessmentPhase.PRE
    ) -> int:
        """Create one instance per teaching assignment in a track.

        Also freezes age groups for every child on the rosters involved.
        Existing instances for the same (enrollment, classroom, phase) are
        left alone.

        Returns:
            Number of instances created
        """
        result = await self.session.execute(
            select(TeachingAssignment, Classroom)
            .join(Enrollment, Enrollment.id == TeachingAssignment.enrollment_id)
            .join(Classroom, Classroom.id == TeachingAssignment.classroom_id)
            .where(Enrollment.track_id == track_id)
            .where(Enrollment.status == "active")
            .order_by(TeachingAssignment.id)
        )
        assignments = result.all()

        roster = SqlClassroomRoster(self.session)
        snapshots = SnapshotService(self.session)
        created = 0

        for assignment, classroom in assignments:
            subjects = await roster.get_active_subjects(classroom.id)
            await snapshots.ensure_snapshots(track_id, subjects)

            existing = await self._find_child_instance(
                ChildAssessmentInstance.enrollment_id == assignment.enrollment_id,
                ChildAssessmentInstance.track_id == track_id,
                ChildAssessmentInstance.classroom_id == classroom.id,
                ChildAssessmentInstance.phase == phase,
            )
            if existing is not None:
                continue

            ref = await self.resolver.resolve(classroom.age_band)
            self.session.add(
                ChildAssessmentInstance(
                    enrollment_id=assignment.enrollment_id,
                    track_id=track_id,
                    classroom_id=classroom.id,
                    phase=phase,
                    instrument_age_band=classroom.age_band,
                    instrument_id=ref.instrument_id if ref else None,
                    instrument_version=ref.version if ref else None,
                    status=AssessmentStatus.NOT_STARTED,
                )
            )
            created += 1

        await self.session.commit()
        logger.info(f"Generated {created} child assessment instance(s) for track {track_id}")
        return created

    # ------------------------------------------------------------------
    # Teacher self-assessments
    # ------------------------------------------------------------------

    async def resolve_teacher_activity(
        self, activity_id: int, ctx: RequestContext
    ) -> ActivityBinding:
        """Find or create the caller's self-assessment for an activity.

        Raises:
            AssessmentNotFoundError: Unknown activity or no enrollment
        """
        activity = await self._get_activity(activity_id, ActivityType.TEACHER_SELF_ASSESSMENT)
        enrollment = await self._find_enrollment(ctx.user_id, activity.track_id)
        phase = AssessmentPhase(activity.phase)

        result = await self.session.execute(
            select(TeacherAssessmentInstance)
            .where(TeacherAssessmentInstance.enrollment_id == enrollment.id)
            .where(TeacherAssessmentInstance.track_id == activity.track_id)
            .where(TeacherAssessmentInstance.phase == phase)
        )
        instance = result.scalar_one_or_none()

        if instance is None:
            instance = await self._create_teacher_instance(enrollment, activity, phase)
        elif instance.activity_id is None:
            instance.activity_id = activity.id
            await self.session.commit()

        return ActivityBinding(
            instance_id=instance.id,
            phase=instance.phase,
            instrument_ref=(
                InstrumentRef(instance.instrument_id, instance.instrument_version)
                if instance.instrument_id
                else None
            ),
        )

    async def _create_teacher_instance(
        self, enrollment: Enrollment, activity: Activity, phase: AssessmentPhase
    ) -> TeacherAssessmentInstance:
        ref = activity.external_ref or {}
        repository = SqlTeacherInstrumentRepository(self.session)

        instrument = None
        explicit = _ref_int(ref, "teacher_instrument_id")
        if explicit:
            instrument = await self.session.get(TeacherInstrument, explicit)
        if instrument is None:
            instrument = await repository.latest_active(ref.get("instrument_key"))

        instance = TeacherAssessmentInstance(
            enrollment_id=enrollment.id,
            activity_id=activity.id,
            track_id=activity.track_id,
            phase=phase,
            instrument_id=instrument.id if instrument else None,
            instrument_version=instrument.version if instrument else None,
            responses={},
            status=AssessmentStatus.NOT_STARTED,
        )
        self.session.add(instance)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            result = await self.session.execute(
                select(TeacherAssessmentInstance)
                .where(TeacherAssessmentInstance.enrollment_id == enrollment.id)
                .where(TeacherAssessmentInstance.track_id == activity.track_id)
                .where(TeacherAssessmentInstance.phase == phase)
            )
            existing = result.scalar_one_or_none()
            if existing is None:
                raise
            return existing

        logger.info(
            f"Created teacher assessment instance {instance.id} for enrollment {enrollment.id}"
        )
        return instance


class ActivityProgress:
    """Marks pathway activities complete when their assessment is submitted."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def mark_complete(
        self,
        enrollment_id: int,
        track_id: int,
        activity_type: ActivityType,
        phase: str,
    ) -> int:
        """Complete every activity of ``activity_type`` and ``phase`` in the track.

        Child assessments only count as complete once every child
        instance of the enrollment for that phase is submitted.

        Returns:
            Number of activity states updated
        """
        if activity_type == ActivityType.CHILD_ASSESSMENT:
            result = await self.session.execute(
                select(ChildAssessmentInstance.status)
                .where(ChildAssessmentInstance.enrollment_id == enrollment_id)
                .where(ChildAssessmentInstance.track_id == track_id)
                .where(ChildAssessmentInstance.phase == phase)
            )
            if any(s != AssessmentStatus.SUBMITTED for s in result.scalars().all()):
                return 0

        result = await self.session.execute(
            select(Activity)
            .where(Activity.track_id == track_id)
            .where(Activity.activity_type == activity_type)
        )
        activities = [a for a in result.scalars().all() if a.phase == phase]

        now = datetime.now(timezone.utc)
        for activity in activities:
            state_result = await self.session.execute(
                select(ActivityState)
                .where(ActivityState.enrollment_id == enrollment_id)
                .where(ActivityState.activity_id == activity.id)
            )
            state = state_result.scalar_one_or_none()
            if state is None:
                state = ActivityState(enrollment_id=enrollment_id, activity_id=activity.id)
                self.session.add(state)
            state.completion_status = CompletionStatus.COMPLETE
            state.completion_percent = 100
            state.completed_at = now

        await self.session.flush()
        return len(activities)
