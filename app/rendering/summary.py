"""Read-only summary of a child assessment."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Sequence

from markupsafe import Markup

from app.assessment.answers import AnswerMap, AnswerRow, is_answered
from app.assessment.roster import Subject
from app.instruments.age_groups import AGE_GROUP_ORDER, age_group_label
from app.instruments.model import Instrument, LikertQuestion, Question
from app.models.assessment import ChildRowStatus
from app.rendering.context import FormHeader
from app.rendering.templating import macro, render


@dataclass(frozen=True)
class SummaryRow:
    label: str
    answers: AnswerMap = field(default_factory=dict)
    skipped: bool = False
    dob: str = ""

    def display(self, key: str, question: Question | None = None) -> str | None:
        """Text shown for one answer, None when unanswered."""
        value = self.answers.get(key)
        if not is_answered(value):
            return None
        if isinstance(value, list):
            return ", ".join(value)
        if isinstance(question, LikertQuestion):
            return question.label_for(value)
        return value


@dataclass
class SummaryGroup:
    title: str
    questions: tuple[Question, ...] = ()
    rows: list[SummaryRow] = field(default_factory=list)


def render_transposed_summary(rows: Sequence[SummaryRow], question: LikertQuestion) -> Markup:
    """Children as rows, likert values as columns, one dot per answered row."""
    return macro("summary_tables.html", "transposed_summary")(rows, question)


def to_summary_row(row: AnswerRow, subject: Subject | None) -> SummaryRow:
    return SummaryRow(
        label=subject.short_label if subject else "Child",
        answers=row.answers,
        skipped=row.is_skipped,
        dob=subject.dob_display if subject else "",
    )


def build_summary_groups(
    rows: Sequence[AnswerRow],
    subjects: Mapping[int, Subject],
    instruments: Mapping[int, Instrument],
    fallback: Instrument | None = None,
) -> list[SummaryGroup]:
    """Group rows by frozen age group in canonical order.

    Rows without a known age group land in a trailing "Other" group that
    uses the instance-level instrument. Rows for children who had already
    left the classroom are not shown.
    """
    by_group: dict[str | None, list[AnswerRow]] = {}
    for row in rows:
        if row.status == ChildRowStatus.NOT_IN_CLASSROOM:
            continue
        group = row.frozen_age_group if row.frozen_age_group in AGE_GROUP_ORDER else None
        by_group.setdefault(group, []).append(row)

    groups = []
    for group in list(AGE_GROUP_ORDER) + [None]:
        members = by_group.get(group)
        if not members:
            continue
        instrument = fallback
        if group:
            instrument = next(
                (instruments[r.instrument_id] for r in members if r.instrument_id in instruments),
                fallback,
            )
        summary_rows = sorted(
            (to_summary_row(r, subjects.get(r.subject_id)) for r in members),
            key=lambda r: r.label.lower(),
        )
        groups.append(
            SummaryGroup(
                title=age_group_label(group) if group else "Other",
                questions=instrument.questions if instrument else (),
                rows=summary_rows,
            )
        )
    return groups


def render_child_summary(
    header: FormHeader,
    groups: Sequence[SummaryGroup],
    submitted_at: datetime | None,
    messages: Markup | None = None,
) -> Markup:
    return render(
        "child_summary.html",
        header=header,
        groups=groups,
        submitted_at=submitted_at,
        messages=messages,
    )
