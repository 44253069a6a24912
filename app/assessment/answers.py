"""Typed answer maps and their storage/payload boundaries.

Child answers: ``AnswerRow`` per subject holding ``question key -> value``
where a value is a string or, for multi-select, a list of strings.

Teacher responses: ``section key -> item key -> value``. In the post phase
retrospective items are stored as ``{"now": value}``; the "before" value is
never stored on the post instance, it is joined in from the pre instance by
``join_retrospective``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Union

from app.instruments.model import Instrument, SectionedInstrument
from app.models.assessment import AssessmentPhase, ChildRowStatus

logger = logging.getLogger(__name__)

AnswerValue = Union[str, list[str]]
AnswerMap = dict[str, AnswerValue]
ResponseMap = dict[str, dict[str, str]]

# Per-subject keys in a posted child form that are not answers
CONTROL_KEYS = ("_age_group", "_instrument_id", "_skip", "_skip_reason")


def is_answered(value: Any) -> bool:
    """A value counts as answered when it is a non-blank string or a non-empty list."""
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(is_answered(v) for v in value)
    return str(value).strip() != ""


def clean_answer_value(value: Any) -> AnswerValue | None:
    """Normalize one posted value. Blank values become None."""
    if isinstance(value, (list, tuple)):
        values = [str(v).strip() for v in value if is_answered(v)]
        return values or None
    if isinstance(value, dict):
        return None
    if not is_answered(value):
        return None
    return str(value).strip()


@dataclass
class AnswerRow:
    """One subject's answers within an instance."""

    subject_id: int
    answers: AnswerMap = field(default_factory=dict)
    status: ChildRowStatus = ChildRowStatus.ACTIVE
    skip_reason: str | None = None
    frozen_age_group: str | None = None
    instrument_id: int | None = None

    @property
    def is_skipped(self) -> bool:
        return self.status == ChildRowStatus.SKIPPED


@dataclass(frozen=True)
class PostedSubject:
    """One subject's block from a posted child form."""

    subject_id: int
    answers: AnswerMap
    age_group: str | None = None
    instrument_id: int | None = None
    skipped: bool = False
    skip_reason: str | None = None


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def parse_child_payload(payload: Any) -> list[PostedSubject]:
    """Decode ``answers[subject_id][...]`` into ``PostedSubject`` entries.

    Control keys are split off the answer map. Non-numeric subject ids
    are ignored.
    """
    if not isinstance(payload, dict):
        return []

    subjects = []
    for raw_id, block in payload.items():
        subject_id = _optional_int(raw_id)
        if subject_id is None or not isinstance(block, dict):
            logger.warning(f"Ignoring malformed answer block for subject {raw_id!r}")
            continue

        block = dict(block)
        age_group = str(block.pop("_age_group", "") or "").strip() or None
        instrument_id = _optional_int(block.pop("_instrument_id", None))
        skipped = str(block.pop("_skip", "0")).strip() == "1"
        skip_reason = str(block.pop("_skip_reason", "") or "").strip() or None

        answers: AnswerMap = {}
        for key, value in block.items():
            cleaned = clean_answer_value(value)
            if cleaned is not None:
                answers[str(key)] = cleaned

        subjects.append(
            PostedSubject(
                subject_id=subject_id,
                answers=answers,
                age_group=age_group,
                instrument_id=instrument_id,
                skipped=skipped,
                skip_reason=skip_reason if skipped else None,
            )
        )
    return subjects


def filter_answers(answers: AnswerMap, instrument: Instrument | None) -> AnswerMap:
    """Keep only answers to the instrument's questions that the question accepts.

    With no instrument nothing can be checked, so nothing is kept.
    """
    if instrument is None:
        if answers:
            logger.warning(f"Dropping {len(answers)} answer(s) with no instrument bound")
        return {}

    kept: AnswerMap = {}
    for key, value in answers.items():
        question = instrument.question(key)
        if question is None:
            logger.warning(f"Dropping answer for unknown question {key!r}")
            continue
        if not question.accepts(value):
            logger.warning(f"Dropping out-of-range value {value!r} for {key}")
            continue
        kept[key] = value
    return kept


# ---------------------------------------------------------------------------
# Teacher responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetrospectiveItemValue:
    """Pre-phase value alongside the current value for one item."""

    before: str | None = None
    now: str | None = None


def _item_value(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("now")
    if not is_answered(value) or isinstance(value, (list, tuple)):
        return None
    return str(value).strip()


def parse_teacher_payload(payload: Any, instrument: SectionedInstrument) -> ResponseMap:
    """Decode ``resp[section][item]`` or ``resp[section][item][now]``.

    Only sections and items defined by the instrument are kept; values
    outside a section's option set are dropped.
    """
    if not isinstance(payload, dict):
        return {}

    responses: ResponseMap = {}
    for section in instrument.get_sections():
        posted = payload.get(section.key)
        if not isinstance(posted, dict):
            continue
        allowed = set(instrument.option_values(section))
        for item in section.items:
            value = _item_value(posted.get(item.key))
            if value is None:
                continue
            if value not in allowed:
                logger.warning(
                    f"Dropping out-of-range value {value!r} for {section.key}.{item.key}"
                )
                continue
            responses.setdefault(section.key, {})[item.key] = value
    return responses


def responses_from_storage(raw: Any) -> ResponseMap:
    """Read a stored response document into a flat ``ResponseMap``."""
    if not isinstance(raw, dict):
        return {}
    responses: ResponseMap = {}
    for section_key, items in raw.items():
        if not isinstance(items, dict):
            continue
        for item_key, value in items.items():
            value = _item_value(value)
            if value is not None:
                responses.setdefault(str(section_key), {})[str(item_key)] = value
    return responses


def responses_to_storage(
    responses: ResponseMap,
    instrument: SectionedInstrument,
    phase: AssessmentPhase | str,
) -> dict[str, dict[str, Any]]:
    """Serialize a ``ResponseMap`` for the instance's JSON column."""
    is_post = AssessmentPhase(phase) == AssessmentPhase.POST
    retrospective = {s.key for s in instrument.get_sections() if s.retrospective}

    stored: dict[str, dict[str, Any]] = {}
    for section_key, items in responses.items():
        wrap = is_post and section_key in retrospective
        stored[section_key] = {
            item_key: {"now": value} if wrap else value for item_key, value in items.items()
        }
    return stored


def merge_responses(existing: ResponseMap, posted: ResponseMap) -> ResponseMap:
    """Posted values win per item; items not posted keep their saved value."""
    merged = {section: dict(items) for section, items in existing.items()}
    for section, items in posted.items():
        merged.setdefault(section, {}).update(items)
    return merged


def join_retrospective(
    instrument: SectionedInstrument,
    current: ResponseMap,
    pre: ResponseMap | None = None,
) -> dict[str, dict[str, RetrospectiveItemValue]]:
    """Pair every item's current value with its pre-phase value.

    Args:
        instrument: Instrument whose sections drive the join
        current: Responses of the instance being rendered
        pre: Responses of the submitted pre-phase instance, if any

    Returns:
        ``section key -> item key -> RetrospectiveItemValue``
    """
    pre = pre or {}
    joined: dict[str, dict[str, RetrospectiveItemValue]] = {}
    for section in instrument.get_sections():
        section_now = current.get(section.key, {})
        section_before = pre.get(section.key, {})
        joined[section.key] = {
            item.key: RetrospectiveItemValue(
                before=section_before.get(item.key),
                now=section_now.get(item.key),
            )
            for item in section.items
        }
    return joined
