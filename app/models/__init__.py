"""Database models for the program assessment service."""

from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    ChildAssessmentInstance,
    ChildAssessmentRow,
    ChildRowStatus,
    TeacherAssessmentInstance,
)
from app.models.audit_event import ActorType, AuditEvent
from app.models.classroom import (
    Child,
    ChildClassroom,
    ChildTrackSnapshot,
    Classroom,
    TeachingAssignment,
)
from app.models.instrument import ChildInstrument, TeacherInstrument
from app.models.program import (
    Activity,
    ActivityState,
    ActivityType,
    CompletionStatus,
    Enrollment,
    Track,
)

__all__ = [
    # Program
    "Track",
    "Enrollment",
    "Activity",
    "ActivityType",
    "ActivityState",
    "CompletionStatus",
    # Classroom
    "Classroom",
    "TeachingAssignment",
    "Child",
    "ChildClassroom",
    "ChildTrackSnapshot",
    # Instruments
    "ChildInstrument",
    "TeacherInstrument",
    # Assessments
    "AssessmentPhase",
    "AssessmentStatus",
    "ChildRowStatus",
    "ChildAssessmentInstance",
    "ChildAssessmentRow",
    "TeacherAssessmentInstance",
    # Audit
    "AuditEvent",
    "ActorType",
]
