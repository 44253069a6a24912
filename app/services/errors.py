"""Assessment service exceptions.

Raised by services and turned into notices at the router boundary.
"""

from app.assessment.validation import MissingAnswer


class AssessmentError(Exception):
    """Base exception for assessment errors."""

    pass


class AssessmentNotFoundError(AssessmentError):
    """Raised when an instance or activity does not exist."""

    pass


class AssessmentPermissionError(AssessmentError):
    """Raised when the caller neither owns the instance nor may manage it."""

    pass


class AssessmentAlreadySubmittedError(AssessmentError):
    """Raised on any write to a submitted instance."""

    pass


class InstrumentUnresolvedError(AssessmentError):
    """Raised when no instrument can be bound to the instance."""

    pass


class AssessmentValidationError(AssessmentError):
    """Raised when a final submission is incomplete.

    Data posted with the attempt has already been saved as a draft.
    """

    def __init__(self, missing: list[MissingAnswer]) -> None:
        self.missing = missing
        super().__init__(f"{len(missing)} required answer(s) missing")
