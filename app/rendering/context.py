"""View inputs shared by the renderers."""

from dataclasses import dataclass, field

from app.assessment.roster import Subject
from app.instruments.age_groups import age_group_label
from app.instruments.behavior_key import behavior_key_for_age_band
from app.instruments.model import BehaviorKeyRow, Instrument


@dataclass(frozen=True)
class FormHeader:
    """Branding and identity shown above a form or summary."""

    instance_id: int
    title: str
    phase: str
    teacher_name: str | None = None
    school_name: str | None = None
    classroom_name: str | None = None
    # Autosave endpoint used by the "missing a child?" link
    draft_url: str | None = None
    missing_child_url: str | None = None

    @property
    def phase_label(self) -> str:
        return "(Post)" if self.phase == "post" else "(Pre)"


@dataclass
class SubjectGroup:
    """Children answered with one instrument.

    ``age_group`` is None for forms that use a single instrument for the
    whole classroom.
    """

    age_group: str | None
    instrument: Instrument | None
    subjects: list[Subject] = field(default_factory=list)

    @property
    def label(self) -> str:
        return age_group_label(self.age_group) if self.age_group else ""

    @property
    def heading(self) -> str:
        count = len(self.subjects)
        noun = "child" if count == 1 else "children"
        return f"{self.label} ({count} {noun})"

    @property
    def behavior_key(self) -> tuple[BehaviorKeyRow, ...]:
        """Key shown above a single-likert matrix."""
        if self.instrument is None:
            return ()
        return self.instrument.behavior_key or behavior_key_for_age_band(
            self.age_group or self.instrument.age_band
        )
