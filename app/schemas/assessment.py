"""Pydantic schemas for the JSON assessment endpoints."""

from pydantic import BaseModel


class DraftSaveResponse(BaseModel):
    """Result of an autosave."""

    success: bool
    message: str
    status: str | None = None
