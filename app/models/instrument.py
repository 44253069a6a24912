"""Versioned instrument definitions for child and teacher assessments."""

from datetime import date

from sqlalchemy import Date, String, Text
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class ChildInstrument(Base, TimestampMixin):
    """Per-age-band child assessment instrument.

    Instruments are immutable once an instance references them. A new
    version gets a new row with its own effective date range.
    """

    __tablename__ = "child_instruments"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    # children_<age_band>, e.g. children_toddler
    instrument_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0",
    )
    # Ordered list of question dicts
    questions: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    # Optional override for the Key & Example Behavior table
    behavior_key: Mapped[list | None] = mapped_column(
        JSON,
        nullable=True,
    )
    effective_from: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    # Null means open-ended
    effective_to: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ChildInstrument {self.instrument_type} v{self.version}>"


class TeacherInstrument(Base, TimestampMixin):
    """Sectioned teacher self-assessment instrument."""

    __tablename__ = "teacher_instruments"

    instrument_key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0",
    )
    sections: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    # scale_key -> list of labels (likert) or {"low": .., "high": ..} (scale)
    scale_labels: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )
    instructions: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    styles: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    def __repr__(self) -> str:
        return f"<TeacherInstrument {self.instrument_key} v{self.version}>"
