"""Loads teacher self-assessments for display."""

from dataclasses import dataclass
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.answers import (
    ResponseMap,
    RetrospectiveItemValue,
    join_retrospective,
    responses_from_storage,
)
from app.assessment.validation import MissingAnswer
from app.core.security import RequestContext
from app.instruments.model import SectionedInstrument
from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    TeacherAssessmentInstance,
)
from app.models.program import Enrollment, Track
from app.rendering.pages import InstanceListItem
from app.services.errors import InstrumentUnresolvedError
from app.services.stores import SqlTeacherInstrumentRepository
from app.services.submission import SubmissionService


@dataclass
class TeacherAssessmentView:
    instance: TeacherAssessmentInstance
    instrument: SectionedInstrument
    values: dict[str, dict[str, RetrospectiveItemValue]]

    @property
    def read_only(self) -> bool:
        return self.instance.status == AssessmentStatus.SUBMITTED


def first_missing_step(instrument: SectionedInstrument, missing: list[MissingAnswer]) -> int:
    """Index of the first section holding a gap, 0 when there is none."""
    keys = {gap.section_key for gap in missing}
    for index, section in enumerate(instrument.get_sections()):
        if section.key in keys:
            return index
    return 0


class TeacherAssessmentService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.instruments = SqlTeacherInstrumentRepository(session)
        self.submissions = SubmissionService(session)

    async def list_instances(
        self, ctx: RequestContext, url_for: Callable[[int], str]
    ) -> list[InstanceListItem]:
        result = await self.session.execute(
            select(TeacherAssessmentInstance, Track.name)
            .join(Enrollment, Enrollment.id == TeacherAssessmentInstance.enrollment_id)
            .join(Track, Track.id == TeacherAssessmentInstance.track_id)
            .where(Enrollment.user_id == ctx.user_id)
            .order_by(TeacherAssessmentInstance.track_id, TeacherAssessmentInstance.phase.desc())
        )
        return [
            InstanceListItem(
                instance_id=instance.id,
                url=url_for(instance.id),
                track_name=track_name,
                status=AssessmentStatus(instance.status).value,
                phase=AssessmentPhase(instance.phase).value,
                submitted_at=instance.submitted_at,
            )
            for instance, track_name in result.all()
        ]

    async def pre_responses(self, instance: TeacherAssessmentInstance) -> ResponseMap | None:
        """Responses of the same enrollment's submitted pre-phase instance, if any.

        A pre instance still in draft has no frozen "before" values yet.
        """
        result = await self.session.execute(
            select(TeacherAssessmentInstance)
            .where(TeacherAssessmentInstance.enrollment_id == instance.enrollment_id)
            .where(TeacherAssessmentInstance.track_id == instance.track_id)
            .where(TeacherAssessmentInstance.phase == AssessmentPhase.PRE)
            .where(TeacherAssessmentInstance.status == AssessmentStatus.SUBMITTED)
        )
        pre = result.scalar_one_or_none()
        if pre is None:
            return None
        return responses_from_storage(pre.responses)

    async def load(self, instance_id: int, ctx: RequestContext) -> TeacherAssessmentView:
        """Load an instance with its retrospective values joined in.

        Raises:
            AssessmentNotFoundError: Unknown instance
            AssessmentPermissionError: Caller may not see it
            InstrumentUnresolvedError: Instance has no usable instrument
        """
        instance = await self.submissions.get_teacher_instance(instance_id, ctx)
        instrument = (
            await self.instruments.get(instance.instrument_id) if instance.instrument_id else None
        )
        if instrument is None:
            raise InstrumentUnresolvedError(f"Teacher assessment {instance.id} has no instrument")

        pre = None
        if instance.phase == AssessmentPhase.POST:
            pre = await self.pre_responses(instance)

        values = join_retrospective(instrument, responses_from_storage(instance.responses), pre)
        return TeacherAssessmentView(instance=instance, instrument=instrument, values=values)
