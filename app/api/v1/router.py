"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import child_assessments, health, teacher_assessments

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Child assessments
api_router.include_router(
    child_assessments.router,
    prefix="/child-assessments",
    tags=["child-assessments"],
)

# Teacher self-assessments
api_router.include_router(
    teacher_assessments.router,
    prefix="/teacher-assessments",
    tags=["teacher-assessments"],
)
