"""Teacher self-assessment form.

Pre phase: one radio group per item. Post phase, retrospective sections:
a disabled "Before Program" group showing the pre-phase answer next to an
editable "Now" group. Several sections paginate one step at a time.
"""

from dataclasses import dataclass
from typing import Mapping

from markupsafe import Markup

from app.assessment.answers import RetrospectiveItemValue
from app.instruments.model import Section, SectionItem, SectionedInstrument
from app.rendering.templating import render

PHASE_TITLES = {
    "pre": "Pre-Program Self-Assessment",
    "post": "Post-Program Self-Assessment",
}

Values = Mapping[str, Mapping[str, RetrospectiveItemValue]]


@dataclass(frozen=True)
class ItemView:
    item: SectionItem
    value: RetrospectiveItemValue
    low: str
    high: str


@dataclass(frozen=True)
class SectionView:
    """One section as the template draws it."""

    section: Section
    index: int
    active: bool
    retrospective: bool
    labels: tuple[str, ...]
    options: tuple[str, ...]
    items: tuple[ItemView, ...]

    @property
    def choices(self) -> list[tuple[str, str]]:
        return list(zip(self.options, self.labels))


def build_section_views(
    instrument: SectionedInstrument,
    phase: str,
    values: Values,
    start_step: int = 0,
) -> list[SectionView]:
    views = []
    for index, section in enumerate(instrument.get_sections()):
        anchors = instrument.scale_anchors(section)
        section_values = values.get(section.key, {})
        items = tuple(
            ItemView(
                item=item,
                value=section_values.get(item.key) or RetrospectiveItemValue(),
                low=item.left_anchor or anchors.low,
                high=item.right_anchor or anchors.high,
            )
            for item in section.items
        )
        views.append(
            SectionView(
                section=section,
                index=index,
                active=index == start_step,
                retrospective=phase == "post" and section.retrospective,
                labels=instrument.likert_labels(section),
                options=instrument.option_values(section),
                items=items,
            )
        )
    return views


def render_teacher_form(
    instrument: SectionedInstrument,
    instance_id: int,
    phase: str,
    values: Values,
    *,
    read_only: bool = False,
    messages: Markup | None = None,
    start_step: int = 0,
) -> Markup:
    """Render a self-assessment.

    Args:
        instrument: Sectioned instrument
        instance_id: Instance being edited or shown
        phase: ``pre`` or ``post``
        values: Output of ``join_retrospective`` for this instance
        read_only: Render without a form, every radio disabled
        messages: Notices shown above the sections
        start_step: Section opened first (the first one with a gap after a
            rejected submit)

    Returns:
        Form markup, or a notice when the instrument has no sections
    """
    count = len(instrument.get_sections())
    start_step = max(0, min(start_step, count - 1))

    return render(
        "teacher_form.html",
        instrument=instrument,
        instance_id=instance_id,
        phase=phase,
        phase_title=PHASE_TITLES.get(phase, PHASE_TITLES["pre"]),
        sections=build_section_views(instrument, phase, values, start_step),
        read_only=read_only,
        paginated=count > 1 and not read_only,
        start_step=start_step,
        messages=messages,
        instructions=Markup(instrument.get_instructions()),
        inline_style=_inline_styles(instrument),
    )


def _inline_styles(instrument: SectionedInstrument) -> str | None:
    """Instrument ``styles`` map (CSS property -> value) as an inline style."""
    styles = instrument.get_styles()
    if not styles:
        return None
    return "; ".join(f"{k}: {v}" for k, v in styles.items() if isinstance(v, (str, int)))
