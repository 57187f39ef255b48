"""
Domain errors with stable machine-readable codes.

Every error raised by the quiz services derives from QuizServiceError. The
exception handlers in lessonquiz.main render them as
``{"success": false, "error": {"code", "message", "details"}}``.
"""
import enum
from typing import Any, Dict, Optional


class ErrorCode(str, enum.Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    QUIZ_NOT_FOUND = "QUIZ_NOT_FOUND"
    QUESTION_NOT_FOUND = "QUESTION_NOT_FOUND"
    NO_QUESTIONS = "NO_QUESTIONS"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_ALREADY_SUBMITTED = "SESSION_ALREADY_SUBMITTED"
    ATTEMPT_LIMIT_EXCEEDED = "ATTEMPT_LIMIT_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class QuizServiceError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500
    default_message: str = "An internal error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(QuizServiceError):
    code = ErrorCode.UNAUTHENTICATED
    status_code = 401
    default_message = "Authentication required"


class Forbidden(QuizServiceError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    default_message = "Insufficient role"


class QuizNotFound(QuizServiceError):
    code = ErrorCode.QUIZ_NOT_FOUND
    status_code = 404
    default_message = "Quiz not found"


class QuestionNotFound(QuizServiceError):
    code = ErrorCode.QUESTION_NOT_FOUND
    status_code = 404
    default_message = "Question not found"


class NoQuestionsError(QuizServiceError):
    code = ErrorCode.NO_QUESTIONS
    status_code = 404
    default_message = "No questions found for this quiz"


class SessionNotFound(QuizServiceError):
    code = ErrorCode.SESSION_NOT_FOUND
    status_code = 404
    default_message = "Quiz session not found or expired"


class SessionAlreadySubmitted(QuizServiceError):
    code = ErrorCode.SESSION_ALREADY_SUBMITTED
    status_code = 409
    default_message = "This quiz session has already been submitted"


class AttemptLimitExceeded(QuizServiceError):
    code = ErrorCode.ATTEMPT_LIMIT_EXCEEDED
    status_code = 500

    def __init__(self, max_attempts: int):
        self.max_attempts = max_attempts
        super().__init__(
            f"Maximum attempts ({max_attempts}) reached for this quiz",
            details={"max_attempts": max_attempts},
        )


class PersistenceFailure(QuizServiceError):
    code = ErrorCode.PERSISTENCE_FAILURE
    status_code = 500
    default_message = "Failed to save quiz attempt"
