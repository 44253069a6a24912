"""Turns assessment errors and rendered fragments into HTTP responses."""

import logging

from fastapi import status
from fastapi.responses import HTMLResponse
from markupsafe import Markup

from app.rendering.pages import page, render_message
from app.services.errors import (
    AssessmentAlreadySubmittedError,
    AssessmentError,
    AssessmentNotFoundError,
    AssessmentPermissionError,
    AssessmentValidationError,
    InstrumentUnresolvedError,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "Assessment instance not found."
FORBIDDEN = "You do not have permission to access this assessment."
ALREADY_SUBMITTED = "This assessment has already been submitted and can no longer be changed."
UNRESOLVED = (
    "No assessment instrument is available for this assessment yet. "
    "Please contact your track administrator."
)
INCOMPLETE = "Please answer every required question before submitting."

_ERRORS: list[tuple[type[AssessmentError], int, str]] = [
    (AssessmentNotFoundError, status.HTTP_404_NOT_FOUND, NOT_FOUND),
    (AssessmentPermissionError, status.HTTP_403_FORBIDDEN, FORBIDDEN),
    (AssessmentAlreadySubmittedError, status.HTTP_409_CONFLICT, ALREADY_SUBMITTED),
    (InstrumentUnresolvedError, status.HTTP_409_CONFLICT, UNRESOLVED),
    (AssessmentValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, INCOMPLETE),
]


def error_status(exc: AssessmentError) -> tuple[int, str]:
    """HTTP status and user-facing message for an assessment error."""
    for error_type, status_code, message in _ERRORS:
        if isinstance(exc, error_type):
            return status_code, message
    return status.HTTP_400_BAD_REQUEST, str(exc)


def html_page(title: str, body: Markup, status_code: int = status.HTTP_200_OK) -> HTMLResponse:
    return HTMLResponse(str(page(title, body)), status_code=status_code)


def error_page(exc: AssessmentError, title: str = "Assessment") -> HTMLResponse:
    status_code, message = error_status(exc)
    logger.info(f"{type(exc).__name__}: {exc}")
    kind = "warning" if status_code == status.HTTP_409_CONFLICT else "error"
    return html_page(title, render_message(message, kind), status_code)
