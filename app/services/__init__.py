"""Business logic services."""

from app.services.activity import ActivityProgress, ActivityResolver
from app.services.audit import write_audit_event
from app.services.child_assessment import ChildAssessmentService
from app.services.submission import SaveAction, SubmissionService
from app.services.teacher_assessment import TeacherAssessmentService

__all__ = [
    "ActivityProgress",
    "ActivityResolver",
    "write_audit_event",
    "ChildAssessmentService",
    "SaveAction",
    "SubmissionService",
    "TeacherAssessmentService",
]
