# scoring_api/errors.py
from __future__ import annotations


class ScoringError(Exception):
    """Base class for failures of a scoring operation. Carries the HTTP status the API reports."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ScoringError):
    """Raised when a match id does not resolve to a stored match."""

    status_code = 404


class PreconditionFailed(ScoringError):
    """Raised when an operation is invoked in a match state that forbids it."""

    status_code = 400


class ValidationError(ScoringError):
    """Raised when ball input or a match patch is malformed."""

    status_code = 400


class ConflictError(ScoringError):
    """Raised when a write is based on a stale version of the match."""

    status_code = 409


class PersistenceError(ScoringError):
    """Raised when the match store is unavailable or a store call fails."""

    status_code = 503
