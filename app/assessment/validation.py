"""Server-side completeness checks for final submission."""

from dataclasses import dataclass
from typing import Iterable, Mapping

from app.assessment.answers import AnswerRow, ResponseMap, is_answered
from app.instruments.model import Instrument, SectionedInstrument
from app.models.assessment import ChildRowStatus

UNANSWERED = "unanswered"
SKIP_REASON_REQUIRED = "skip_reason_required"
NO_INSTRUMENT = "no_instrument"


@dataclass(frozen=True)
class MissingAnswer:
    """One gap that blocks submission.

    ``subject_id`` is None for teacher self-assessments, where
    ``section_key`` locates the item instead.
    """

    subject_id: int | None
    question_key: str
    reason: str = UNANSWERED
    section_key: str | None = None


def missing_child_answers(
    rows: Iterable[AnswerRow],
    instruments: Mapping[int, Instrument],
) -> list[MissingAnswer]:
    """Check every row that is still expected to be answered.

    Skipped rows need a skip reason and nothing else. Stale and retired
    rows are exempt. Active rows must answer every required question of
    the instrument they are bound to with a value the question accepts.
    """
    missing = []
    for row in rows:
        if row.status == ChildRowStatus.SKIPPED:
            if not (row.skip_reason or "").strip():
                missing.append(
                    MissingAnswer(row.subject_id, "_skip_reason", SKIP_REASON_REQUIRED)
                )
            continue
        if row.status != ChildRowStatus.ACTIVE:
            continue

        instrument = instruments.get(row.instrument_id) if row.instrument_id else None
        if instrument is None:
            missing.append(MissingAnswer(row.subject_id, "_instrument_id", NO_INSTRUMENT))
            continue

        for question in instrument.required_questions():
            value = row.answers.get(question.key)
            if not is_answered(value) or not question.accepts(value):
                missing.append(MissingAnswer(row.subject_id, question.key))
    return missing


def missing_teacher_responses(
    instrument: SectionedInstrument,
    responses: ResponseMap,
) -> list[MissingAnswer]:
    """Every item of every section must carry a value."""
    missing = []
    for section in instrument.get_sections():
        answered = responses.get(section.key, {})
        for item in section.items:
            if not is_answered(answered.get(item.key)):
                missing.append(
                    MissingAnswer(None, item.key, UNANSWERED, section_key=section.key)
                )
    return missing
