"""Roster reconciliation.

Aligns saved answer rows with the classroom's current roster. Runs on view
load (stored status update only) and again on every save against a freshly
fetched roster.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from app.assessment.answers import AnswerRow
from app.models.assessment import ChildRowStatus


@dataclass(frozen=True)
class Subject:
    """A child as returned by a ``ClassroomRoster``."""

    id: int
    first_name: str | None = None
    last_name: str | None = None
    display_code: str | None = None
    dob: date | None = None

    @property
    def full_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.display_code or "Child"

    @property
    def short_label(self) -> str:
        """``First L.``, else the display code, else ``Child``."""
        if self.first_name:
            initial = f" {self.last_name[0]}." if self.last_name else ""
            return f"{self.first_name}{initial}"
        return self.display_code or "Child"

    @property
    def dob_display(self) -> str:
        if not self.dob:
            return ""
        return f"{self.dob.month}/{self.dob.day}/{self.dob.year}"


@dataclass
class Reconciliation:
    to_add: set[int] = field(default_factory=set)
    to_retire: list[AnswerRow] = field(default_factory=list)
    to_restore: list[AnswerRow] = field(default_factory=list)


def reconcile(current_subject_ids: Iterable[int], saved_rows: Iterable[AnswerRow]) -> Reconciliation:
    """Compare the current roster with the rows already saved.

    Args:
        current_subject_ids: Ids on the roster right now
        saved_rows: Rows stored for the instance

    Returns:
        ``to_add``: roster subjects with no row yet.
        ``to_retire``: rows whose subject left the roster and is not
        already marked ``not_in_classroom``.
        ``to_restore``: ``not_in_classroom`` rows whose subject is back on
        the roster.
    """
    current = set(current_subject_ids)
    rows = list(saved_rows)
    saved_ids = {row.subject_id for row in rows}

    return Reconciliation(
        to_add=current - saved_ids,
        to_retire=[
            row
            for row in rows
            if row.subject_id not in current
            and row.status != ChildRowStatus.NOT_IN_CLASSROOM
        ],
        to_restore=[
            row
            for row in rows
            if row.subject_id in current
            and row.status == ChildRowStatus.NOT_IN_CLASSROOM
        ],
    )


def classify_posted_subject(
    subject_id: int,
    skipped: bool,
    current_subject_ids: Iterable[int],
) -> ChildRowStatus:
    """Row status for a subject present in a posted form.

    A subject that was on screen but has since left the roster is kept as
    ``stale_at_submit`` so its answers are not dropped.
    """
    if skipped:
        return ChildRowStatus.SKIPPED
    if subject_id not in set(current_subject_ids):
        return ChildRowStatus.STALE_AT_SUBMIT
    return ChildRowStatus.ACTIVE
