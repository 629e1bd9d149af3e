"""
Engine Errors

Explicit error kinds raised by the service layer. The request layer maps
each kind to an HTTP status; message text is purely diagnostic.
"""

import enum
from typing import Dict


class ErrorKind(str, enum.Enum):
    """Error kind enumeration."""
    NOT_FOUND = "NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    QUIZ_NOT_PASSED = "QUIZ_NOT_PASSED"
    UNSUPPORTED_QUESTION_TYPE = "UNSUPPORTED_QUESTION_TYPE"
    CONFLICT = "CONFLICT"
    STALE_REFERENCE = "STALE_REFERENCE"


class EngineError(Exception):
    """Base error for the progression engine."""

    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class NotFound(EngineError):
    """A video, quiz or user does not exist (or is not available)."""

    kind = ErrorKind.NOT_FOUND


class AccessDenied(EngineError):
    """The sequential gating rule forbids the requested action."""

    kind = ErrorKind.ACCESS_DENIED


class QuizNotPassed(EngineError):
    """Completion was attempted without a passing quiz result."""

    kind = ErrorKind.QUIZ_NOT_PASSED


class UnsupportedQuestionType(EngineError):
    """A quiz definition contains a question variant the evaluator cannot score."""

    kind = ErrorKind.UNSUPPORTED_QUESTION_TYPE


class Conflict(EngineError):
    """The request conflicts with current state."""

    kind = ErrorKind.CONFLICT


class StaleReference(EngineError):
    """
    A progress record points at a video that no longer exists.

    Healed in place by the progress service; only used for logging.
    """

    kind = ErrorKind.STALE_REFERENCE


# HTTP status per error kind, used by the exception handler in main.py
HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.QUIZ_NOT_PASSED: 400,
    ErrorKind.UNSUPPORTED_QUESTION_TYPE: 422,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STALE_REFERENCE: 409,
}
