"""Ownership checks shared by the assessment services."""

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import RequestContext
from app.models.program import Enrollment
from app.services.errors import AssessmentNotFoundError, AssessmentPermissionError


async def authorize_enrollment(
    session: AsyncSession,
    enrollment_id: int,
    ctx: RequestContext,
) -> Enrollment:
    """Return the enrollment if the caller may act on its instances.

    Raises:
        AssessmentNotFoundError: If the enrollment does not exist
        AssessmentPermissionError: If the caller is neither the enrolled
            user nor holds a manage role
    """
    enrollment = await session.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise AssessmentNotFoundError(f"Enrollment {enrollment_id} not found")
    if enrollment.user_id != ctx.user_id and not ctx.can_manage:
        raise AssessmentPermissionError(
            f"User {ctx.user_id} may not access enrollment {enrollment_id}"
        )
    return enrollment
