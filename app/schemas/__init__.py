"""Pydantic schemas for request/response validation."""

from app.schemas.assessment import DraftSaveResponse

__all__ = [
    "DraftSaveResponse",
]
