"""Classrooms, their rosters and per-track child age snapshots."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, utc_now


class Classroom(Base, TimestampMixin):
    """A classroom taught by one or more enrolled teachers."""

    __tablename__ = "classrooms"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    school_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # infant | toddler | preschool | k2 | mixed
    age_band: Mapped[str | None] = mapped_column(String(20), nullable=True)


class TeachingAssignment(Base, TimestampMixin):
    """Links an enrollment to a classroom it teaches."""

    __tablename__ = "teaching_assignments"
    __table_args__ = (UniqueConstraint("enrollment_id", "classroom_id"),)

    enrollment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    classroom_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        nullable=False,
    )


class Child(Base, TimestampMixin):
    """A child that can appear on classroom rosters."""

    __tablename__ = "children"

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    display_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)


class ChildClassroom(Base, TimestampMixin):
    """Roster membership. Removal flips status rather than deleting."""

    __tablename__ = "child_classrooms"
    __table_args__ = (UniqueConstraint("child_id", "classroom_id"),)

    child_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("children.id", ondelete="CASCADE"),
        nullable=False,
    )
    classroom_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class ChildTrackSnapshot(Base, TimestampMixin):
    """Age group frozen for a child for the life of a track."""

    __tablename__ = "child_track_snapshots"
    __table_args__ = (UniqueConstraint("child_id", "track_id"),)

    child_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("children.id", ondelete="CASCADE"),
        nullable=False,
    )
    track_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    frozen_age_group: Mapped[str] = mapped_column(String(20), nullable=False)
    dob_at_freeze: Mapped[date | None] = mapped_column(Date, nullable=True)
    age_months_at_freeze: Mapped[int | None] = mapped_column(Integer, nullable=True)
    frozen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
