"""Program structure: tracks, enrollments, activities and their completion."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class ActivityType(str, Enum):
    """Activity kinds that open an assessment."""

    CHILD_ASSESSMENT = "child_assessment"
    TEACHER_SELF_ASSESSMENT = "teacher_self_assessment"


class CompletionStatus(str, Enum):
    """Activity completion state for one enrollment."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class Track(Base, TimestampMixin):
    """A program cohort run."""

    __tablename__ = "tracks"

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Enrollment(Base, TimestampMixin):
    """A platform user taking part in a track."""

    __tablename__ = "enrollments"

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    track_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class Activity(Base, TimestampMixin):
    """Pathway activity that points at an assessment.

    ``external_ref`` carries the phase and, optionally, an explicit
    instrument id (``instrument_id`` or ``teacher_instrument_id``).
    """

    __tablename__ = "activities"

    track_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    activity_type: Mapped[ActivityType] = mapped_column(String(50), nullable=False)
    external_ref: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    @property
    def phase(self) -> str:
        ref = self.external_ref or {}
        return ref.get("phase") or "pre"


class ActivityState(Base, TimestampMixin):
    """Completion of one activity by one enrollment."""

    __tablename__ = "activity_states"
    __table_args__ = (UniqueConstraint("enrollment_id", "activity_id"),)

    enrollment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
    )
    activity_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
    )
    completion_status: Mapped[CompletionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CompletionStatus.NOT_STARTED,
    )
    completion_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
