"""Draft/submit state machine for child and teacher assessments.

``not_started -> in_progress -> submitted``. ``submitted`` is terminal:
any further save raises ``AssessmentAlreadySubmittedError``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.answers import (
    AnswerRow,
    filter_answers,
    merge_responses,
    parse_child_payload,
    parse_teacher_payload,
    responses_from_storage,
    responses_to_storage,
)
from app.assessment.roster import classify_posted_subject, reconcile
from app.assessment.validation import missing_child_answers, missing_teacher_responses
from app.core.security import RequestContext
from app.instruments.age_groups import is_valid_age_group
from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    ChildAssessmentInstance,
    ChildRowStatus,
    TeacherAssessmentInstance,
)
from app.models.audit_event import ActorType
from app.models.program import ActivityType
from app.services.access import authorize_enrollment
from app.services.activity import ActivityProgress
from app.services.audit import write_audit_event
from app.services.binding import InstrumentBinder
from app.services.errors import (
    AssessmentAlreadySubmittedError,
    AssessmentNotFoundError,
    AssessmentValidationError,
    InstrumentUnresolvedError,
)
from app.services.snapshot import SnapshotService
from app.services.stores import (
    SqlAnswerStore,
    SqlClassroomRoster,
    SqlTeacherInstrumentRepository,
)

logger = logging.getLogger(__name__)

DRAFT_SAVED = "Draft saved successfully."
SUBMITTED = "Assessment submitted successfully."


class SaveAction(str, Enum):
    """What the user asked for when posting a form."""

    DRAFT = "draft"
    SUBMIT = "submit"


@dataclass(frozen=True)
class SaveResult:
    instance_id: int
    status: AssessmentStatus
    submitted_at: datetime | None
    message: str


class SubmissionService:
    """Saves posted answers and moves instances through their states.

    Every save re-fetches the roster and reconciles before merging, in
    the same transaction. A failed submit still keeps what was posted.
    """

    def __init__(
        self,
        session: AsyncSession,
        roster: SqlClassroomRoster | None = None,
        store: SqlAnswerStore | None = None,
    ) -> None:
        self.session = session
        self.roster = roster or SqlClassroomRoster(session)
        self.store = store or SqlAnswerStore(session)
        self.binder = InstrumentBinder(session)
        self.teacher_instruments = SqlTeacherInstrumentRepository(session)

    async def get_child_instance(
        self, instance_id: int, ctx: RequestContext
    ) -> ChildAssessmentInstance:
        instance = await self.session.get(ChildAssessmentInstance, instance_id)
        if instance is None:
            raise AssessmentNotFoundError(f"Child assessment {instance_id} not found")
        await authorize_enrollment(self.session, instance.enrollment_id, ctx)
        return instance

    async def get_teacher_instance(
        self, instance_id: int, ctx: RequestContext
    ) -> TeacherAssessmentInstance:
        instance = await self.session.get(TeacherAssessmentInstance, instance_id)
        if instance is None:
            raise AssessmentNotFoundError(f"Teacher assessment {instance_id} not found")
        await authorize_enrollment(self.session, instance.enrollment_id, ctx)
        return instance

    # ------------------------------------------------------------------
    # Child assessments
    # ------------------------------------------------------------------

    async def save_child(
        self,
        instance_id: int,
        payload: Any,
        action: SaveAction,
        ctx: RequestContext,
    ) -> SaveResult:
        """Merge a posted child form and apply ``action``.

        Args:
            instance_id: Child assessment instance
            payload: Decoded ``answers[child_id][...]`` map
            action: Draft or submit
            ctx: Caller

        Returns:
            SaveResult with the new status

        Raises:
            AssessmentNotFoundError: Unknown instance
            AssessmentPermissionError: Caller may not write this instance
            AssessmentAlreadySubmittedError: Instance is already submitted
            AssessmentValidationError: Submit with required answers missing
        """
        instance = await self.get_child_instance(instance_id, ctx)
        if instance.status == AssessmentStatus.SUBMITTED:
            raise AssessmentAlreadySubmittedError(
                f"Child assessment {instance.id} was already submitted"
            )

        subjects = []
        known_ids: set[int] = set()
        if instance.classroom_id is not None:
            subjects = await self.roster.get_active_subjects(instance.classroom_id)
            known_ids = await self.roster.get_known_subject_ids(instance.classroom_id)
        current_ids = {s.id for s in subjects}

        saved = await self.store.get_rows(instance.id)
        saved_by_id = {row.subject_id: row for row in saved}

        # Reconcile first so the merge sees settled statuses
        reconciliation = reconcile(current_ids, saved)
        await self.store.mark_rows(
            instance.id,
            [row.subject_id for row in reconciliation.to_retire],
            ChildRowStatus.NOT_IN_CLASSROOM,
        )
        await self.store.mark_rows(
            instance.id,
            [row.subject_id for row in reconciliation.to_restore],
            ChildRowStatus.ACTIVE,
        )

        groups = await SnapshotService(self.session).ensure_snapshots(instance.track_id, subjects)

        merged = []
        for posted in parse_child_payload(payload):
            sid = posted.subject_id
            if sid not in current_ids and sid not in saved_by_id and sid not in known_ids:
                logger.warning(f"Ignoring answers for child {sid} not on classroom roster")
                continue

            prior = saved_by_id.get(sid)
            age_group = (
                (prior.frozen_age_group if prior else None)
                or (posted.age_group if is_valid_age_group(posted.age_group) else None)
                or groups.get(sid)
            )
            instrument_id = await self.binder.bind(
                instance,
                posted.instrument_id,
                prior.instrument_id if prior else None,
                age_group,
            )
            answers = filter_answers(posted.answers, await self.binder.get(instrument_id))
            merged.append(
                AnswerRow(
                    subject_id=sid,
                    answers=answers,
                    status=classify_posted_subject(sid, posted.skipped, current_ids),
                    skip_reason=posted.skip_reason,
                    frozen_age_group=age_group,
                    instrument_id=instrument_id,
                )
            )

        await self.store.upsert_rows(instance.id, merged)

        if instance.status == AssessmentStatus.NOT_STARTED:
            await self.store.set_instance_status(instance.id, AssessmentStatus.IN_PROGRESS)

        if action == SaveAction.DRAFT:
            await self.session.commit()
            logger.info(
                f"Saved draft for child assessment {instance.id}",
                extra={"instance_id": instance.id, "user_id": ctx.user_id},
            )
            return SaveResult(instance.id, AssessmentStatus(instance.status), None, DRAFT_SAVED)

        rows = {row.subject_id: row for row in await self.store.get_rows(instance.id)}
        to_check = []
        for subject in subjects:
            row = rows.get(subject.id)
            if row is None:
                group = groups.get(subject.id)
                row = AnswerRow(
                    subject_id=subject.id,
                    frozen_age_group=group,
                    instrument_id=await self.binder.bind(instance, None, None, group),
                )
            to_check.append(row)
        # Posted skips for children who already left still need a reason
        to_check.extend(
            row
            for sid, row in rows.items()
            if sid not in current_ids and row.status == ChildRowStatus.SKIPPED
        )
        for row in to_check:
            await self.binder.get(row.instrument_id)

        missing = missing_child_answers(to_check, self.binder.loaded())
        if missing:
            await self.session.commit()
            logger.info(
                f"Submit of child assessment {instance.id} blocked: "
                f"{len(missing)} missing answer(s)"
            )
            raise AssessmentValidationError(missing)

        now = datetime.now(timezone.utc)
        await self.store.set_instance_status(instance.id, AssessmentStatus.SUBMITTED, now)
        await write_audit_event(
            self.session,
            actor_type=ActorType.USER,
            actor_id=ctx.user_id,
            action="child_assessment.submitted",
            entity_type="child_assessment_instance",
            entity_id=instance.id,
            metadata={
                "enrollment_id": instance.enrollment_id,
                "classroom_id": instance.classroom_id,
                "phase": AssessmentPhase(instance.phase).value,
                "rows": len(rows),
            },
        )
        await ActivityProgress(self.session).mark_complete(
            instance.enrollment_id,
            instance.track_id,
            ActivityType.CHILD_ASSESSMENT,
            instance.phase,
        )
        await self.session.commit()

        return SaveResult(instance.id, AssessmentStatus.SUBMITTED, now, SUBMITTED)

    # ------------------------------------------------------------------
    # Teacher self-assessments
    # ------------------------------------------------------------------

    async def save_teacher(
        self,
        instance_id: int,
        payload: Any,
        action: SaveAction,
        ctx: RequestContext,
    ) -> SaveResult:
        """Merge posted ``resp[section][item]`` values and apply ``action``.

        Only this instance is written. In the post phase the pre-phase
        instance is read for display and never modified.

        Raises:
            AssessmentNotFoundError: Unknown instance
            AssessmentPermissionError: Caller may not write this instance
            AssessmentAlreadySubmittedError: Instance is already submitted
            InstrumentUnresolvedError: Instance has no usable instrument
            AssessmentValidationError: Submit with items unanswered
        """
        instance = await self.get_teacher_instance(instance_id, ctx)
        if instance.status == AssessmentStatus.SUBMITTED:
            raise AssessmentAlreadySubmittedError(
                f"Teacher assessment {instance.id} was already submitted"
            )

        instrument = (
            await self.teacher_instruments.get(instance.instrument_id)
            if instance.instrument_id
            else None
        )
        if instrument is None:
            raise InstrumentUnresolvedError(
                f"Teacher assessment {instance.id} has no instrument"
            )

        merged = merge_responses(
            responses_from_storage(instance.responses),
            parse_teacher_payload(payload, instrument),
        )
        instance.responses = responses_to_storage(merged, instrument, instance.phase)
        if instance.status == AssessmentStatus.NOT_STARTED:
            instance.status = AssessmentStatus.IN_PROGRESS

        if action == SaveAction.DRAFT:
            await self.session.commit()
            logger.info(
                f"Saved draft for teacher assessment {instance.id}",
                extra={"instance_id": instance.id, "user_id": ctx.user_id},
            )
            return SaveResult(instance.id, AssessmentStatus(instance.status), None, DRAFT_SAVED)

        missing = missing_teacher_responses(instrument, merged)
        if missing:
            await self.session.commit()
            raise AssessmentValidationError(missing)

        now = datetime.now(timezone.utc)
        instance.status = AssessmentStatus.SUBMITTED
        instance.submitted_at = now
        await write_audit_event(
            self.session,
            actor_type=ActorType.USER,
            actor_id=ctx.user_id,
            action="teacher_assessment.submitted",
            entity_type="teacher_assessment_instance",
            entity_id=instance.id,
            metadata={
                "enrollment_id": instance.enrollment_id,
                "phase": AssessmentPhase(instance.phase).value,
                "instrument_version": instance.instrument_version,
            },
        )
        await ActivityProgress(self.session).mark_complete(
            instance.enrollment_id,
            instance.track_id,
            ActivityType.TEACHER_SELF_ASSESSMENT,
            instance.phase,
        )
        await self.session.commit()

        return SaveResult(instance.id, AssessmentStatus.SUBMITTED, now, SUBMITTED)
