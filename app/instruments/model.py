"""In-memory instrument definitions.

Stored instruments are loose JSON documents. This module parses them into
typed, immutable structures shared by the renderers and the validators:

- ``Instrument``: a flat, ordered list of questions (child assessments).
  Each question is one variant of the ``Question`` tagged union.
- ``SectionedInstrument``: ordered sections of likert/scale items plus
  named scale-label sets (teacher self-assessments).

Parsing never raises. Malformed or non-structured input produces an
instrument with no questions/sections, which callers render as an
informational "nothing configured" state.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

logger = logging.getLogger(__name__)


class QuestionType(str, Enum):
    """Supported question widgets."""

    LIKERT = "likert"
    SCALE = "scale"
    TEXT = "text"
    NUMBER = "number"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"


class SectionType(str, Enum):
    """Widget used for every item of a section."""

    LIKERT = "likert"
    SCALE = "scale"


LIKERT_DEFAULT_VALUES = ("0", "1", "2", "3", "4")
SCALE_DEFAULT_VALUES = tuple(str(v) for v in range(11))
SECTION_LIKERT_DEFAULT_LABELS = ("1", "2", "3", "4", "5")

# Stored likert values 0-4 and the words shown for them
LIKERT_LABELS = {
    "0": "Never",
    "1": "Rarely",
    "2": "Sometimes",
    "3": "Usually",
    "4": "Almost Always",
}


def is_numeric_likert(values: tuple[str, ...] | list[str]) -> bool:
    """True when every value is one of the 0-4 likert codes."""
    if not values:
        return False
    return all(str(v) in LIKERT_LABELS for v in values)


def likert_label(value: Any) -> str:
    return LIKERT_LABELS.get(str(value), str(value))


def parse_allowed_values(value: Any, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    """Normalize an allowed-value set.

    Accepts a list or a comma-delimited string. Entries are stringified and
    trimmed; empty entries are dropped. Falls back to ``default`` when
    nothing usable remains.
    """
    if isinstance(value, (list, tuple)):
        values = [str(v).strip() for v in value if v is not None]
    elif isinstance(value, str):
        values = [part.strip() for part in value.split(",")]
    else:
        values = []

    values = [v for v in values if v != ""]
    return tuple(values) if values else default


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _load(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Instrument definition is not valid JSON")
            return None
    return raw


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _QuestionBase:
    key: str
    prompt: str
    required: bool = False

    def accepts(self, value: Any) -> bool:
        """Whether a stored or posted value is valid for this question."""
        return isinstance(value, str)


@dataclass(frozen=True)
class LikertQuestion(_QuestionBase):
    type: ClassVar[QuestionType] = QuestionType.LIKERT
    allowed_values: tuple[str, ...] = LIKERT_DEFAULT_VALUES

    def accepts(self, value: Any) -> bool:
        return value in self.allowed_values

    @property
    def uses_likert_labels(self) -> bool:
        return is_numeric_likert(self.allowed_values)

    def label_for(self, value: str) -> str:
        return likert_label(value) if self.uses_likert_labels else value


@dataclass(frozen=True)
class ScaleQuestion(_QuestionBase):
    type: ClassVar[QuestionType] = QuestionType.SCALE
    allowed_values: tuple[str, ...] = SCALE_DEFAULT_VALUES
    left_anchor: str | None = None
    right_anchor: str | None = None

    def accepts(self, value: Any) -> bool:
        return value in self.allowed_values


@dataclass(frozen=True)
class TextQuestion(_QuestionBase):
    type: ClassVar[QuestionType] = QuestionType.TEXT


@dataclass(frozen=True)
class NumberQuestion(_QuestionBase):
    type: ClassVar[QuestionType] = QuestionType.NUMBER

    def accepts(self, value: Any) -> bool:
        if not isinstance(value, str):
            return False
        try:
            float(value)
        except ValueError:
            return False
        return True


@dataclass(frozen=True)
class SingleSelectQuestion(_QuestionBase):
    type: ClassVar[QuestionType] = QuestionType.SINGLE_SELECT
    allowed_values: tuple[str, ...] = ()

    def accepts(self, value: Any) -> bool:
        if not isinstance(value, str):
            return False
        return not self.allowed_values or value in self.allowed_values


@dataclass(frozen=True)
class MultiSelectQuestion(_QuestionBase):
    type: ClassVar[QuestionType] = QuestionType.MULTI_SELECT
    allowed_values: tuple[str, ...] = ()

    def accepts(self, value: Any) -> bool:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not value:
            return False
        return not self.allowed_values or all(v in self.allowed_values for v in value)


Question = Union[
    LikertQuestion,
    ScaleQuestion,
    TextQuestion,
    NumberQuestion,
    SingleSelectQuestion,
    MultiSelectQuestion,
]


def parse_question(raw: Any) -> Question | None:
    """Parse one question dict. Returns None when it has no key."""
    if not isinstance(raw, dict):
        return None

    key = str(raw.get("question_id") or raw.get("key") or "").strip()
    if not key:
        return None

    prompt = str(raw.get("prompt_text") or raw.get("text") or raw.get("prompt") or "")
    required = _is_truthy(raw.get("required", False))
    type_name = str(raw.get("question_type") or raw.get("type") or "text").strip().lower()
    allowed = raw.get("allowed_values")

    if type_name == QuestionType.LIKERT:
        return LikertQuestion(
            key, prompt, required, parse_allowed_values(allowed, LIKERT_DEFAULT_VALUES)
        )
    if type_name == QuestionType.SCALE:
        return ScaleQuestion(
            key,
            prompt,
            required,
            parse_allowed_values(allowed, SCALE_DEFAULT_VALUES),
            raw.get("left_anchor"),
            raw.get("right_anchor"),
        )
    if type_name == QuestionType.NUMBER:
        return NumberQuestion(key, prompt, required)
    if type_name == QuestionType.SINGLE_SELECT:
        return SingleSelectQuestion(key, prompt, required, parse_allowed_values(allowed))
    if type_name == QuestionType.MULTI_SELECT:
        return MultiSelectQuestion(key, prompt, required, parse_allowed_values(allowed))
    return TextQuestion(key, prompt, required)


def parse_questions(raw: Any) -> list[Question]:
    """Parse a question list (list, JSON string, or ``{"questions": [...]}``)."""
    data = _load(raw)
    if isinstance(data, dict):
        data = data.get("questions")
    if not isinstance(data, list):
        return []

    questions = []
    for entry in data:
        question = parse_question(entry)
        if question is not None:
            questions.append(question)
    return questions


@dataclass(frozen=True)
class BehaviorKeyRow:
    """One row of the Key & Example Behavior table."""
    label: str
    frequency: str
    description: str


@dataclass(frozen=True)
class Instrument:
    """A flat question-list instrument."""

    id: int | None = None
    name: str = ""
    version: str | None = None
    instrument_type: str = ""
    questions: tuple[Question, ...] = ()
    behavior_key: tuple[BehaviorKeyRow, ...] | None = None

    @property
    def is_empty(self) -> bool:
        return not self.questions

    @property
    def is_single_likert(self) -> bool:
        """Exactly one question and it is a likert question."""
        return len(self.questions) == 1 and isinstance(self.questions[0], LikertQuestion)

    @property
    def age_band(self) -> str | None:
        if self.instrument_type.startswith("children_"):
            return self.instrument_type[len("children_"):]
        return None

    def required_questions(self) -> list[Question]:
        return [q for q in self.questions if q.required]

    def question(self, key: str) -> Question | None:
        for question in self.questions:
            if question.key == key:
                return question
        return None


def parse_behavior_key(raw: Any) -> tuple[BehaviorKeyRow, ...] | None:
    """Parse a custom behavior key. Rows with every field blank are dropped."""
    data = _load(raw)
    if not isinstance(data, list):
        return None
    rows = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        row = BehaviorKeyRow(
            label=str(entry.get("label") or ""),
            frequency=str(entry.get("frequency") or ""),
            description=str(entry.get("description") or ""),
        )
        if row.label or row.frequency or row.description:
            rows.append(row)
    return tuple(rows) or None


def parse_instrument(
    raw_questions: Any,
    *,
    instrument_id: int | None = None,
    name: str = "",
    version: str | None = None,
    instrument_type: str = "",
    behavior_key: Any = None,
) -> Instrument:
    """Build an ``Instrument`` from a stored question document."""
    return Instrument(
        id=instrument_id,
        name=name,
        version=version,
        instrument_type=instrument_type or "",
        questions=tuple(parse_questions(raw_questions)),
        behavior_key=parse_behavior_key(behavior_key),
    )


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SectionItem:
    key: str
    text: str
    left_anchor: str | None = None
    right_anchor: str | None = None


@dataclass(frozen=True)
class Section:
    """A group of items sharing one widget and one label set.

    ``retrospective`` sections render a read-only "before" group next to
    an editable "now" group in the post phase.
    """

    key: str
    title: str = ""
    description: str = ""
    type: SectionType = SectionType.LIKERT
    scale_key: str = ""
    retrospective: bool = True
    items: tuple[SectionItem, ...] = ()


@dataclass(frozen=True)
class ScaleAnchors:
    low: str = "0"
    high: str = "10"


@dataclass(frozen=True)
class SectionedInstrument:
    """Teacher self-assessment instrument."""

    id: int | None = None
    name: str = ""
    version: str | None = None
    sections: tuple[Section, ...] = ()
    scale_labels: dict[str, Any] = field(default_factory=dict)
    instructions: str = ""
    styles: dict[str, Any] = field(default_factory=dict)

    def get_sections(self) -> tuple[Section, ...]:
        return self.sections

    def get_scale_labels(self) -> dict[str, Any]:
        return self.scale_labels

    def get_instructions(self) -> str:
        return self.instructions

    def get_styles(self) -> dict[str, Any]:
        return self.styles

    def likert_labels(self, section: Section) -> tuple[str, ...]:
        """Column labels for a likert section, ``1..5`` when fewer than two."""
        labels = self.scale_labels.get(section.scale_key)
        if isinstance(labels, (list, tuple)) and len(labels) >= 2:
            return tuple(str(label) for label in labels)
        return SECTION_LIKERT_DEFAULT_LABELS

    def scale_anchors(self, section: Section) -> ScaleAnchors:
        labels = self.scale_labels.get(section.scale_key)
        if isinstance(labels, dict):
            return ScaleAnchors(
                low=str(labels.get("low", "0")), high=str(labels.get("high", "10"))
            )
        return ScaleAnchors()

    def option_values(self, section: Section) -> tuple[str, ...]:
        """Values stored for a section's items.

        Likert sections store the option index (``"0"`` .. ``"n-1"``), scale
        sections store ``"0"`` .. ``"10"``.
        """
        if section.type == SectionType.SCALE:
            return SCALE_DEFAULT_VALUES
        return tuple(str(i) for i in range(len(self.likert_labels(section))))

    def item_count(self) -> int:
        return sum(len(s.items) for s in self.sections)


def _parse_section(raw: Any) -> Section | None:
    if not isinstance(raw, dict):
        return None
    key = str(raw.get("section_key") or raw.get("key") or "").strip()
    if not key:
        return None

    try:
        section_type = SectionType(str(raw.get("type") or "likert").lower())
    except ValueError:
        section_type = SectionType.LIKERT

    items = []
    for entry in raw.get("items") or []:
        if not isinstance(entry, dict):
            continue
        item_key = str(entry.get("key") or "").strip()
        if not item_key:
            continue
        items.append(
            SectionItem(
                key=item_key,
                text=str(entry.get("text") or ""),
                left_anchor=entry.get("left_anchor"),
                right_anchor=entry.get("right_anchor"),
            )
        )

    return Section(
        key=key,
        title=str(raw.get("title") or ""),
        description=str(raw.get("description") or ""),
        type=section_type,
        scale_key=str(raw.get("scale_key") or ""),
        retrospective=_is_truthy(raw.get("retrospective", True)),
        items=tuple(items),
    )


def parse_sectioned_instrument(
    raw: Any,
    *,
    instrument_id: int | None = None,
    name: str = "",
    version: str | None = None,
) -> SectionedInstrument:
    """Parse ``{"sections": [...], "scale_labels": {...}, ...}``.

    A bare list is taken as the section list.
    """
    data = _load(raw)
    if isinstance(data, list):
        data = {"sections": data}
    if not isinstance(data, dict):
        return SectionedInstrument(id=instrument_id, name=name, version=version)

    sections = []
    raw_sections = _load(data.get("sections"))
    if isinstance(raw_sections, list):
        for entry in raw_sections:
            section = _parse_section(entry)
            if section is not None:
                sections.append(section)

    scale_labels = _load(data.get("scale_labels"))
    styles = _load(data.get("styles"))

    return SectionedInstrument(
        id=instrument_id,
        name=name,
        version=version,
        sections=tuple(sections),
        scale_labels=scale_labels if isinstance(scale_labels, dict) else {},
        instructions=str(data.get("instructions") or ""),
        styles=styles if isinstance(styles, dict) else {},
    )
