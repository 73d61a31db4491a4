# core/exceptions.py
"""Domain error taxonomy."""
from core.enums import ErrorCode


class CreditInsightError(Exception):
    """Base error carrying a user-facing error code."""

    error_code = ErrorCode.INVARIANT_VIOLATION

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self):
        # Format used for logging and progress tracking
        return f"[{self.error_code.value}] {self.message}"


class FormatError(CreditInsightError):
    """Malformed import or sync payload."""
    error_code = ErrorCode.INVALID_FORMAT


class NotFoundError(CreditInsightError):
    """A required session, profile or term id does not exist."""
    error_code = ErrorCode.NOT_FOUND


class ExtractionFailure(CreditInsightError):
    """The extraction collaborator failed or returned unusable data."""
    error_code = ErrorCode.EXTRACTION_FAILED


class SyncUnavailable(CreditInsightError):
    """The companion file channel could not be reached."""
    error_code = ErrorCode.SYNC_UNAVAILABLE


class InvariantViolation(CreditInsightError):
    """A request would break a store invariant (e.g. deleting the last profile)."""
    error_code = ErrorCode.INVARIANT_VIOLATION


class AnalysisInProgress(InvariantViolation):
    error_code = ErrorCode.ANALYSIS_IN_PROGRESS
