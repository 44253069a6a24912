"""Collaborators the assessment core talks to.

SQLAlchemy-backed implementations live in ``app.services``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.assessment.answers import AnswerRow
from app.assessment.roster import Subject
from app.core.security import RequestContext
from app.instruments.model import Instrument
from app.instruments.resolution import InstrumentRef
from app.models.assessment import AssessmentStatus, ChildRowStatus


@dataclass(frozen=True)
class ActivityBinding:
    """Where an activity reference leads."""

    instance_id: int
    phase: str
    instrument_ref: InstrumentRef | None


class ClassroomRoster(Protocol):
    async def get_active_subjects(self, classroom_id: int) -> list[Subject]: ...


class AnswerStore(Protocol):
    async def get_rows(self, instance_id: int) -> list[AnswerRow]: ...

    async def upsert_rows(self, instance_id: int, rows: list[AnswerRow]) -> None: ...

    async def mark_rows(
        self, instance_id: int, subject_ids: list[int], status: ChildRowStatus
    ) -> None: ...

    async def set_instance_status(
        self, instance_id: int, status: AssessmentStatus, timestamp: datetime | None = None
    ) -> None: ...


class InstrumentRepository(Protocol):
    async def get(self, instrument_id: int) -> Instrument | None: ...


class ActivityResolver(Protocol):
    async def resolve_child_activity(
        self, activity_id: int, ctx: RequestContext
    ) -> ActivityBinding: ...
