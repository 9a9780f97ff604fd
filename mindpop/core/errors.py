"""Exception hierarchy shared by the stores, the attempt workflow and the server."""

from __future__ import annotations


class MindPopError(Exception):
    """Base class for every error raised by the platform."""


class GatewayError(MindPopError):
    """Raised by a persistence gateway when a read or write is rejected."""


class ValidationError(MindPopError, ValueError):
    """Raised when form input is missing or malformed. Nothing is written."""

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = dict(fields or {})


class AuthenticationRequiredError(MindPopError):
    """Raised when an operation needs a signed-in user and there is none."""


class PermissionDeniedError(MindPopError):
    """Raised when the current user lacks the role an operation requires."""


class RecordNotFoundError(MindPopError, LookupError):
    """Raised when a course, quiz, question or enrollment cannot be found."""


class PersistenceFailure(MindPopError):
    """Wraps any gateway failure surfaced to a caller."""


class PartialCompletionError(PersistenceFailure):
    """The attempt was finalized but the enrollment update failed afterwards."""

    def __init__(self, attempt_id: str, message: str) -> None:
        super().__init__(message)
        self.attempt_id = attempt_id


class DuplicateAttemptError(MindPopError):
    """Raised when a completed attempt already exists for the student and quiz."""


AttemptAlreadyExists = DuplicateAttemptError


class AttemptNotFoundError(MindPopError):
    """Raised on submit when no attempt has been started."""


class AttemptStateError(MindPopError, RuntimeError):
    """Raised when a workflow operation is not allowed in the current state."""


class ReviewNotAvailableError(MindPopError):
    """Raised when a quiz does not allow reviewing completed attempts."""
