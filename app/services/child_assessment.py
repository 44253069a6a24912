"""Loads child assessments for display."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.answers import AnswerRow
from app.assessment.roster import Subject, reconcile
from app.core.config import settings
from app.core.security import RequestContext
from app.instruments.age_groups import AGE_GROUP_ORDER
from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    ChildAssessmentInstance,
    ChildRowStatus,
)
from app.models.classroom import Classroom
from app.models.program import Enrollment, Track
from app.rendering.context import FormHeader, SubjectGroup
from app.rendering.pages import InstanceListItem
from app.rendering.summary import SummaryGroup, build_summary_groups
from app.services.binding import InstrumentBinder, uses_age_groups
from app.services.errors import InstrumentUnresolvedError
from app.services.snapshot import SnapshotService
from app.services.stores import SqlAnswerStore, SqlClassroomRoster
from app.services.submission import SubmissionService

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Child Assessment"


@dataclass
class ChildAssessmentView:
    instance: ChildAssessmentInstance
    header: FormHeader
    rows: dict[int, AnswerRow] = field(default_factory=dict)
    groups: list[SubjectGroup] = field(default_factory=list)
    summary_groups: list[SummaryGroup] = field(default_factory=list)

    @property
    def submitted(self) -> bool:
        return self.instance.status == AssessmentStatus.SUBMITTED


class ChildAssessmentService:
    """Builds everything the child form and summary need.

    Opening an editable instance reconciles saved rows against the
    roster and freezes age groups for children seen for the first time.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.roster = SqlClassroomRoster(session)
        self.store = SqlAnswerStore(session)
        self.binder = InstrumentBinder(session)
        self.submissions = SubmissionService(session, self.roster, self.store)

    async def list_instances(
        self, ctx: RequestContext, url_for: Callable[[int], str]
    ) -> list[InstanceListItem]:
        result = await self.session.execute(
            select(ChildAssessmentInstance, Track.name, Classroom.name)
            .join(Enrollment, Enrollment.id == ChildAssessmentInstance.enrollment_id)
            .join(Track, Track.id == ChildAssessmentInstance.track_id)
            .outerjoin(Classroom, Classroom.id == ChildAssessmentInstance.classroom_id)
            .where(Enrollment.user_id == ctx.user_id)
            .order_by(ChildAssessmentInstance.created_at.desc(), ChildAssessmentInstance.id.desc())
        )
        return [
            InstanceListItem(
                instance_id=instance.id,
                url=url_for(instance.id),
                track_name=track_name,
                status=AssessmentStatus(instance.status).value,
                phase=AssessmentPhase(instance.phase).value,
                classroom_name=classroom_name,
                age_band=instance.instrument_age_band,
                submitted_at=instance.submitted_at,
            )
            for instance, track_name, classroom_name in result.all()
        ]

    async def _header(self, instance: ChildAssessmentInstance) -> FormHeader:
        enrollment = await self.session.get(Enrollment, instance.enrollment_id)
        classroom = (
            await self.session.get(Classroom, instance.classroom_id)
            if instance.classroom_id
            else None
        )
        instrument = await self.binder.get(instance.instrument_id)

        missing_child_url = None
        if settings.classroom_page_url and classroom is not None:
            missing_child_url = settings.classroom_page_url.format(
                classroom_id=classroom.id, instance_id=instance.id
            )

        return FormHeader(
            instance_id=instance.id,
            title=instrument.name if instrument and instrument.name else DEFAULT_TITLE,
            phase=AssessmentPhase(instance.phase).value,
            teacher_name=enrollment.display_name if enrollment else None,
            school_name=classroom.school_name if classroom else None,
            classroom_name=classroom.name if classroom else None,
            missing_child_url=missing_child_url,
        )

    async def load(self, instance_id: int, ctx: RequestContext) -> ChildAssessmentView:
        """Load an instance for the caller.

        Raises:
            AssessmentNotFoundError: Unknown instance
            AssessmentPermissionError: Caller may not see it
            InstrumentUnresolvedError: No instrument for any child on an
                editable instance
        """
        instance = await self.submissions.get_child_instance(instance_id, ctx)
        header = await self._header(instance)
        saved = await self.store.get_rows(instance.id)

        if instance.status == AssessmentStatus.SUBMITTED:
            return await self._summary_view(instance, header, saved)

        subjects = []
        if instance.classroom_id is not None:
            subjects = await self.roster.get_active_subjects(instance.classroom_id)

        reconciliation = reconcile({s.id for s in subjects}, saved)
        retired = [row.subject_id for row in reconciliation.to_retire]
        await self.store.mark_rows(instance.id, retired, ChildRowStatus.NOT_IN_CLASSROOM)
        for row in reconciliation.to_retire:
            row.status = ChildRowStatus.NOT_IN_CLASSROOM
        await self.store.mark_rows(
            instance.id, [row.subject_id for row in reconciliation.to_restore], ChildRowStatus.ACTIVE
        )
        for row in reconciliation.to_restore:
            row.status = ChildRowStatus.ACTIVE

        snapshot_groups = await SnapshotService(self.session).ensure_snapshots(
            instance.track_id, subjects
        )
        rows = {row.subject_id: row for row in saved}
        groups = await self._subject_groups(instance, subjects, rows, snapshot_groups)
        await self.session.commit()

        if subjects and all(g.instrument is None for g in groups):
            raise InstrumentUnresolvedError(
                f"No child instrument resolvable for instance {instance.id}"
            )

        return ChildAssessmentView(instance=instance, header=header, rows=rows, groups=groups)

    async def _subject_groups(
        self,
        instance: ChildAssessmentInstance,
        subjects: list[Subject],
        rows: dict[int, AnswerRow],
        snapshot_groups: dict[int, str],
    ) -> list[SubjectGroup]:
        if not uses_age_groups(instance):
            instrument = await self.binder.get(instance.instrument_id)
            return [SubjectGroup(None, instrument, list(subjects))]

        by_group: dict[str, list[Subject]] = {}
        for subject in subjects:
            row = rows.get(subject.id)
            group = (row.frozen_age_group if row else None) or snapshot_groups.get(subject.id)
            by_group.setdefault(group, []).append(subject)

        ordered = [g for g in AGE_GROUP_ORDER if g in by_group]
        ordered += sorted((g for g in by_group if g not in AGE_GROUP_ORDER), key=str)

        groups = []
        for age_group in ordered:
            members = by_group[age_group]
            instrument = None
            for subject in members:
                row = rows.get(subject.id)
                if row and row.instrument_id:
                    instrument = await self.binder.get(row.instrument_id)
                    if instrument is not None:
                        break
            if instrument is None:
                instrument = await self.binder.for_group(instance, age_group)
            groups.append(SubjectGroup(age_group, instrument, members))
        return groups

    async def _summary_view(
        self,
        instance: ChildAssessmentInstance,
        header: FormHeader,
        saved: list[AnswerRow],
    ) -> ChildAssessmentView:
        subjects = await self.roster.get_subjects(row.subject_id for row in saved)
        for row in saved:
            await self.binder.get(row.instrument_id)
        fallback = await self.binder.get(instance.instrument_id)

        return ChildAssessmentView(
            instance=instance,
            header=header,
            rows={row.subject_id: row for row in saved},
            summary_groups=build_summary_groups(saved, subjects, self.binder.loaded(), fallback),
        )
