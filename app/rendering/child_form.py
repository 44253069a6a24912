"""Child assessment form.

Each ``SubjectGroup`` renders with its own instrument: a single likert
question becomes a transposed matrix (children as rows, likert values as
columns) under the behavior key; anything else becomes one column per
question. Every child row carries hidden ``_age_group`` and
``_instrument_id`` fields plus "Not in my classroom" skip controls.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from markupsafe import Markup

from app.assessment.answers import AnswerRow
from app.assessment.validation import MissingAnswer
from app.rendering.context import FormHeader, SubjectGroup
from app.rendering.templating import render

INSTRUCTIONS = Markup(
    "This questionnaire will ask you about your students and how often they "
    "show certain behaviors. Please read the key below and select the answer "
    "that best describes each child. If possible, "
    "<strong>collaborate with your co-teachers</strong> when completing it."
)

NO_CHILDREN = "No children in this classroom."
NO_QUESTIONS = "No questions configured for this instrument."
NO_GROUP_INSTRUMENT = "No instrument is available for this age group yet."


def row_anchor(subject_id: int) -> str:
    return f"hl-ca-row-{subject_id}"


@dataclass(frozen=True)
class MissingChild:
    """One line of the rejected-submit notice."""

    subject_id: int
    text: str

    @property
    def anchor(self) -> str:
        return row_anchor(self.subject_id)


def missing_children(
    missing: Iterable[MissingAnswer],
    groups: Sequence[SubjectGroup],
) -> list[MissingChild]:
    """Gaps grouped per child, naming each unanswered question.

    Children keep the order of the form so the first entry is the first
    incomplete row on the page.
    """
    by_subject: dict[int, list[MissingAnswer]] = {}
    for gap in missing:
        if gap.subject_id is not None:
            by_subject.setdefault(gap.subject_id, []).append(gap)

    placed = {s.id: (s, g.instrument) for g in groups for s in g.subjects}
    ordered = [sid for sid in placed if sid in by_subject]
    ordered += sorted(sid for sid in by_subject if sid not in placed)

    children = []
    for subject_id in ordered:
        gaps = by_subject[subject_id]
        subject, instrument = placed.get(subject_id, (None, None))
        label = subject.short_label if subject else f"Child {subject_id}"
        if any(g.reason == "skip_reason_required" for g in gaps):
            text = f"{label}: choose a reason for marking them not in your classroom."
        else:
            prompts = []
            for gap in gaps:
                question = instrument.question(gap.question_key) if instrument else None
                prompts.append(question.prompt if question and question.prompt else gap.question_key)
            text = f"{label}: no answer for {'; '.join(prompts)}"
        children.append(MissingChild(subject_id, text))
    return children


def render_missing_answers(
    missing: Iterable[MissingAnswer],
    groups: Sequence[SubjectGroup],
) -> Markup:
    """Error notice listing each (child, question) gap, linked to its row."""
    return render("missing_answers.html", children=missing_children(missing, groups))


def render_child_form(
    header: FormHeader,
    groups: list[SubjectGroup],
    rows: Mapping[int, AnswerRow],
    *,
    messages: Markup | None = None,
    missing: Iterable[MissingAnswer] = (),
) -> Markup:
    """Render the editable child assessment.

    Args:
        header: Instance identity and branding
        groups: Children split by the instrument that applies to them
        rows: Saved rows by child id
        messages: Notices shown above the form
        missing: Gaps from a rejected submit, highlighted in the matrix

    Returns:
        The form markup, or an informational notice when there are no
        children or no questions
    """
    missing = list(missing)
    empty = None
    if not any(g.subjects for g in groups):
        empty = NO_CHILDREN
    elif all(g.instrument is not None and g.instrument.is_empty for g in groups):
        empty = NO_QUESTIONS

    return render(
        "child_form.html",
        header=header,
        groups=groups,
        rows=rows,
        messages=messages,
        empty=empty,
        missing_ids={gap.subject_id for gap in missing if gap.subject_id is not None},
        missing_notice=render_missing_answers(missing, groups),
        instructions=INSTRUCTIONS,
        no_group_instrument=NO_GROUP_INSTRUMENT,
        no_questions=NO_QUESTIONS,
    )
