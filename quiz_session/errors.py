"""
Exception types raised by the assessment session and its boundaries.
"""


class AssessmentError(Exception):
    """Base class for all assessment session errors."""


class ContentLoadFailure(AssessmentError):
    """Assignment or question content could not be fetched."""


class SubmissionFailure(AssessmentError):
    """The submission boundary rejected or could not receive the submission."""


class AutosaveFailure(AssessmentError):
    """The local autosave store could not be read or written."""


class InvalidTransition(AssessmentError):
    """An operation was attempted in a stage that does not allow it."""


class SessionClosed(InvalidTransition):
    """A write was attempted after the session was submitted."""


class UnknownQuestion(AssessmentError, KeyError):
    """An answer referenced a question that is not part of the assignment."""

    def __str__(self):
        return f"Unknown question: {self.args[0]}" if self.args else "Unknown question"


class GradingError(AssessmentError, ValueError):
    """A manual grade is outside the allowed range."""
