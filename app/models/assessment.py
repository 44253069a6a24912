"""Assessment instances and their per-child / per-item answer storage."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class AssessmentPhase(str, Enum):
    """Pre-program vs post-program attempt."""

    PRE = "pre"
    POST = "post"


class AssessmentStatus(str, Enum):
    """Instance lifecycle. ``submitted`` is terminal."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class ChildRowStatus(str, Enum):
    """Lifecycle of one child's answer row."""

    ACTIVE = "active"
    SKIPPED = "skipped"
    # Answered on screen, gone from the roster by the time the form was posted
    STALE_AT_SUBMIT = "stale_at_submit"
    # Dropped off the roster before this view was loaded
    NOT_IN_CLASSROOM = "not_in_classroom"


class ChildAssessmentInstance(Base, TimestampMixin):
    """One teacher's child assessment for a classroom in one phase."""

    __tablename__ = "child_assessment_instances"
    __table_args__ = (UniqueConstraint("enrollment_id", "activity_id"),)

    enrollment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("activities.id", ondelete="SET NULL"),
        nullable=True,
    )
    track_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    classroom_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("classrooms.id", ondelete="SET NULL"),
        nullable=True,
    )
    phase: Mapped[AssessmentPhase] = mapped_column(
        String(10),
        nullable=False,
        default=AssessmentPhase.PRE,
    )
    instrument_age_band: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # Pinned at creation or backfill time
    instrument_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("child_instruments.id"),
        nullable=True,
    )
    instrument_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[AssessmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AssessmentStatus.NOT_STARTED,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ChildAssessmentInstance {self.id} {self.phase} {self.status}>"


class ChildAssessmentRow(Base, TimestampMixin):
    """Answers for one child within one instance."""

    __tablename__ = "child_assessment_rows"
    __table_args__ = (UniqueConstraint("instance_id", "child_id"),)

    instance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("child_assessment_instances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    child_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("children.id", ondelete="CASCADE"),
        nullable=False,
    )
    # question key -> str | list[str]
    answers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[ChildRowStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ChildRowStatus.ACTIVE,
    )
    skip_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    frozen_age_group: Mapped[str | None] = mapped_column(String(20), nullable=True)
    instrument_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("child_instruments.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ChildAssessmentRow instance={self.instance_id} child={self.child_id}>"


class TeacherAssessmentInstance(Base, TimestampMixin):
    """A teacher's self-assessment for one phase of a track."""

    __tablename__ = "teacher_assessment_instances"
    __table_args__ = (UniqueConstraint("enrollment_id", "track_id", "phase"),)

    enrollment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("activities.id", ondelete="SET NULL"),
        nullable=True,
    )
    track_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False,
    )
    phase: Mapped[AssessmentPhase] = mapped_column(
        String(10),
        nullable=False,
        default=AssessmentPhase.PRE,
    )
    instrument_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("teacher_instruments.id"),
        nullable=True,
    )
    instrument_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # section key -> item key -> value, or {"now": value} for retrospective items
    responses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[AssessmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AssessmentStatus.NOT_STARTED,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TeacherAssessmentInstance {self.id} {self.phase} {self.status}>"
