"""Page shell, instance lists and notices."""

from dataclasses import dataclass
from datetime import datetime

from markupsafe import Markup

from app.rendering.templating import render

STATUS_LABELS = {
    "not_started": "Not Started",
    "in_progress": "In Progress",
    "submitted": "Submitted",
}

AGE_BAND_LABELS = {
    "infant": "Infant",
    "toddler": "Toddler",
    "preschool": "Preschool",
    "k2": "K-2",
    "mixed": "Mixed",
}

CHILD_LIST_COLUMNS = ("Track", "Classroom", "Age Band", "Status", "Submitted At", "Action")
TEACHER_LIST_COLUMNS = ("Track", "Phase", "Status", "Submitted At", "Action")


def page(title: str, body: Markup) -> Markup:
    """Wrap a fragment in a standalone HTML document."""
    return render("layout.html", title=title, body=body)


@dataclass(frozen=True)
class InstanceListItem:
    instance_id: int
    url: str
    track_name: str
    status: str
    phase: str
    classroom_name: str | None = None
    age_band: str | None = None
    submitted_at: datetime | None = None

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def age_band_label(self) -> str:
        return AGE_BAND_LABELS.get(self.age_band or "", self.age_band or "")

    @property
    def phase_label(self) -> str:
        return "Post" if self.phase == "post" else "Pre"

    @property
    def action_label(self) -> str:
        return "View" if self.status == "submitted" else "Fill Out"


def render_child_instance_list(items: list[InstanceListItem]) -> Markup:
    return render(
        "instance_list.html",
        items=items,
        heading="My Child Assessments",
        columns=CHILD_LIST_COLUMNS,
        with_classroom=True,
        empty_text=(
            "You do not have any child assessment instances assigned. "
            "Instances are created when your program administrator sets up "
            "assessments for your classroom."
        ),
    )


def render_teacher_instance_list(items: list[InstanceListItem]) -> Markup:
    return render(
        "instance_list.html",
        items=items,
        heading="My Self-Assessments",
        columns=TEACHER_LIST_COLUMNS,
        with_classroom=False,
        empty_text="You do not have any self-assessments assigned.",
    )


def render_message(text: str, kind: str = "error") -> Markup:
    return render("message.html", text=text, kind=kind)


def render_messages(messages: list[tuple[str, str]]) -> Markup:
    """Stacked notices, ``(kind, text)`` pairs."""
    return render("messages.html", messages=messages)
