"""SQLAlchemy-backed roster, answer store and instrument repositories."""

import logging
from datetime import date, datetime
from typing import Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.answers import AnswerRow
from app.assessment.roster import Subject
from app.db.base import utc_now
from app.instruments.model import (
    Instrument,
    SectionedInstrument,
    parse_instrument,
    parse_sectioned_instrument,
)
from app.instruments.resolution import InstrumentRef
from app.models.assessment import (
    AssessmentStatus,
    ChildAssessmentInstance,
    ChildAssessmentRow,
    ChildRowStatus,
)
from app.models.classroom import Child, ChildClassroom
from app.models.instrument import ChildInstrument, TeacherInstrument

logger = logging.getLogger(__name__)


def dialect_insert(session: AsyncSession, model):
    """An INSERT that supports ``ON CONFLICT`` on the session's database."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


def _subject(child: Child) -> Subject:
    return Subject(
        id=child.id,
        first_name=child.first_name,
        last_name=child.last_name,
        display_code=child.display_code,
        dob=child.dob,
    )


class SqlClassroomRoster:
    """Roster read from ``child_classrooms``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_active_subjects(self, classroom_id: int) -> list[Subject]:
        result = await self.session.execute(
            select(Child)
            .join(ChildClassroom, ChildClassroom.child_id == Child.id)
            .where(ChildClassroom.classroom_id == classroom_id)
            .where(ChildClassroom.status == "active")
            .order_by(Child.last_name, Child.first_name, Child.id)
        )
        return [_subject(child) for child in result.scalars().all()]

    async def get_known_subject_ids(self, classroom_id: int) -> set[int]:
        """Ids that have ever been on this classroom's roster."""
        result = await self.session.execute(
            select(ChildClassroom.child_id).where(ChildClassroom.classroom_id == classroom_id)
        )
        return set(result.scalars().all())

    async def get_subjects(self, subject_ids: Iterable[int]) -> dict[int, Subject]:
        ids = list(set(subject_ids))
        if not ids:
            return {}
        result = await self.session.execute(select(Child).where(Child.id.in_(ids)))
        return {child.id: _subject(child) for child in result.scalars().all()}


def _to_answer_row(row: ChildAssessmentRow) -> AnswerRow:
    return AnswerRow(
        subject_id=row.child_id,
        answers=dict(row.answers or {}),
        status=ChildRowStatus(row.status),
        skip_reason=row.skip_reason,
        frozen_age_group=row.frozen_age_group,
        instrument_id=row.instrument_id,
    )


class SqlAnswerStore:
    """Answer rows keyed on (instance, child).

    Writes are flushed, never committed. The calling service owns the
    transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _orm_rows(
        self, instance_id: int, subject_ids: Iterable[int] | None = None
    ) -> list[ChildAssessmentRow]:
        query = select(ChildAssessmentRow).where(ChildAssessmentRow.instance_id == instance_id)
        if subject_ids is not None:
            query = query.where(ChildAssessmentRow.child_id.in_(list(subject_ids)))
        result = await self.session.execute(query.order_by(ChildAssessmentRow.id))
        return list(result.scalars().all())

    async def get_rows(self, instance_id: int) -> list[AnswerRow]:
        return [_to_answer_row(row) for row in await self._orm_rows(instance_id)]

    async def upsert_rows(self, instance_id: int, rows: list[AnswerRow]) -> None:
        """Insert or replace each subject's row. Last write wins per row.

        A row's frozen age group and instrument are only overwritten when
        the incoming row carries them. Rows not loaded yet are written with
        ``ON CONFLICT DO UPDATE`` so a concurrent first save of the same
        row updates it instead of failing.
        """
        if not rows:
            return
        existing = {
            row.child_id: row
            for row in await self._orm_rows(instance_id, [r.subject_id for r in rows])
        }

        for incoming in rows:
            row = existing.get(incoming.subject_id)
            if row is None:
                await self._insert_row(instance_id, incoming)
                continue

            row.answers = dict(incoming.answers)
            row.status = incoming.status
            row.skip_reason = incoming.skip_reason
            row.frozen_age_group = incoming.frozen_age_group or row.frozen_age_group
            row.instrument_id = incoming.instrument_id or row.instrument_id

        await self.session.flush()

    async def _insert_row(self, instance_id: int, incoming: AnswerRow) -> None:
        stmt = dialect_insert(self.session, ChildAssessmentRow).values(
            instance_id=instance_id,
            child_id=incoming.subject_id,
            answers=dict(incoming.answers),
            status=ChildRowStatus(incoming.status).value,
            skip_reason=incoming.skip_reason,
            frozen_age_group=incoming.frozen_age_group,
            instrument_id=incoming.instrument_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["instance_id", "child_id"],
            set_={
                "answers": stmt.excluded.answers,
                "status": stmt.excluded.status,
                "skip_reason": stmt.excluded.skip_reason,
                "frozen_age_group": func.coalesce(
                    stmt.excluded.frozen_age_group, ChildAssessmentRow.frozen_age_group
                ),
                "instrument_id": func.coalesce(
                    stmt.excluded.instrument_id, ChildAssessmentRow.instrument_id
                ),
                "updated_at": utc_now(),
            },
        )
        await self.session.execute(stmt)

    async def mark_rows(
        self, instance_id: int, subject_ids: list[int], status: ChildRowStatus
    ) -> None:
        if not subject_ids:
            return
        for row in await self._orm_rows(instance_id, subject_ids):
            row.status = status
        await self.session.flush()
        logger.info(
            f"Marked {len(subject_ids)} row(s) {status.value} on instance {instance_id}"
        )

    async def set_instance_status(
        self,
        instance_id: int,
        status: AssessmentStatus,
        timestamp: datetime | None = None,
    ) -> None:
        instance = await self.session.get(ChildAssessmentInstance, instance_id)
        if instance is None:
            return
        instance.status = status
        if timestamp is not None:
            instance.submitted_at = timestamp
        await self.session.flush()


def _effective_on(on: date):
    return (
        or_(ChildInstrument.effective_to.is_(None), ChildInstrument.effective_to >= on),
        or_(ChildInstrument.effective_from.is_(None), ChildInstrument.effective_from <= on),
    )


class SqlInstrumentRepository:
    """Child instruments: lookup by id plus the resolution catalog."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, instrument_id: int) -> Instrument | None:
        row = await self.session.get(ChildInstrument, instrument_id)
        if row is None:
            return None
        return parse_instrument(
            row.questions,
            instrument_id=row.id,
            name=row.name,
            version=row.version,
            instrument_type=row.instrument_type,
            behavior_key=row.behavior_key,
        )

    async def get_many(self, instrument_ids: Iterable[int]) -> dict[int, Instrument]:
        instruments = {}
        for instrument_id in set(i for i in instrument_ids if i):
            instrument = await self.get(instrument_id)
            if instrument is not None:
                instruments[instrument_id] = instrument
        return instruments

    async def get_ref(self, instrument_id: int) -> InstrumentRef | None:
        row = await self.session.get(ChildInstrument, instrument_id)
        return InstrumentRef(row.id, row.version) if row else None

    async def _latest(self, *criteria, on: date) -> InstrumentRef | None:
        result = await self.session.execute(
            select(ChildInstrument)
            .where(*criteria, *_effective_on(on))
            .order_by(ChildInstrument.effective_from.desc().nulls_last(), ChildInstrument.id.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return InstrumentRef(row.id, row.version) if row else None

    async def latest_of_type(self, instrument_type: str, on: date) -> InstrumentRef | None:
        return await self._latest(ChildInstrument.instrument_type == instrument_type, on=on)

    async def latest_of_category(self, category: str, on: date) -> InstrumentRef | None:
        return await self._latest(ChildInstrument.instrument_type.like(f"{category}_%"), on=on)


class SqlTeacherInstrumentRepository:
    """Teacher self-assessment instruments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, instrument_id: int) -> SectionedInstrument | None:
        row = await self.session.get(TeacherInstrument, instrument_id)
        if row is None:
            return None
        return parse_sectioned_instrument(
            {
                "sections": row.sections,
                "scale_labels": row.scale_labels,
                "instructions": row.instructions,
                "styles": row.styles,
            },
            instrument_id=row.id,
            name=row.name,
            version=row.version,
        )

    async def latest_active(self, instrument_key: str | None = None) -> TeacherInstrument | None:
        query = select(TeacherInstrument).where(TeacherInstrument.status == "active")
        if instrument_key:
            query = query.where(TeacherInstrument.instrument_key == instrument_key)
        result = await self.session.execute(
            query.order_by(TeacherInstrument.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()
