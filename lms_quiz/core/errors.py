"""Domain errors raised by the quiz attempt engine.

Every error carries a stable ``code`` (used as the ``error`` field of API error
bodies) and the HTTP status the routes answer with. Services raise these; only
the routes know about ``HTTPException``.
"""
from typing import Optional

from fastapi import HTTPException


class QuizEngineError(Exception):
    code = "QuizEngineError"
    status_code = 400

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFound(QuizEngineError):
    code = "NotFound"
    status_code = 404


class AccessDenied(QuizEngineError):
    code = "AccessDenied"
    status_code = 403


class AttemptLimitExceeded(QuizEngineError):
    code = "AttemptLimitExceeded"
    status_code = 403


class QuizNotYetOpen(QuizEngineError):
    code = "QuizNotYetOpen"
    status_code = 403


class QuizClosed(QuizEngineError):
    code = "QuizClosed"
    status_code = 403


class AlreadySubmitted(QuizEngineError):
    code = "AlreadySubmitted"
    status_code = 409


class AttemptExpired(QuizEngineError):
    code = "AttemptExpired"
    status_code = 409


class AttemptConflict(QuizEngineError):
    code = "AttemptConflict"
    status_code = 409


class AttemptNotSubmitted(QuizEngineError):
    code = "AttemptNotSubmitted"
    status_code = 409


class QuizAlreadyExists(QuizEngineError):
    code = "QuizAlreadyExists"
    status_code = 409


class QuestionAlreadyInQuiz(QuizEngineError):
    code = "QuestionAlreadyInQuiz"
    status_code = 409


class InvalidStatusTransition(QuizEngineError):
    code = "InvalidStatusTransition"
    status_code = 409


class QuizConfigurationError(QuizEngineError):
    code = "QuizConfigurationError"
    status_code = 422


class InfrastructureError(QuizEngineError):
    """The backing store failed; distinct from every validation error above."""

    code = "InfrastructureError"
    status_code = 503


def to_http_exception(error: QuizEngineError, message: Optional[str] = None) -> HTTPException:
    """Build the API error response for a domain error."""
    return HTTPException(
        status_code=error.status_code,
        detail={
            "error": error.code,
            "message": message or error.message,
            "details": [{"field": error.field, "message": error.message}],
        },
    )
