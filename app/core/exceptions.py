"""
Domain error taxonomy for the exam engine.

Every error here is recoverable: services raise them, the API layer renders
them as ``{"detail": message, "code": code}`` with the matching status code.
"""
from typing import Optional


class ExamEngineError(Exception):
    status_code: int = 400
    code: str = "EXAM_ENGINE_ERROR"
    default_message: str = "Request could not be processed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Not found ---
class NotFound(ExamEngineError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found."

class ExamNotFound(NotFound):
    code = "EXAM_NOT_FOUND"
    default_message = "Exam not found."

class AttemptNotFound(NotFound):
    code = "ATTEMPT_NOT_FOUND"
    default_message = "Attempt not found."

class CourseNotFound(NotFound):
    code = "COURSE_NOT_FOUND"
    default_message = "Course not found."


# --- Authorization ---
class AccessDenied(ExamEngineError):
    status_code = 403
    code = "ACCESS_DENIED"
    default_message = "Access denied."


# --- Temporal ---
class InvalidTimeWindow(ExamEngineError):
    code = "INVALID_TIME_WINDOW"
    default_message = "End time must be after start time."

class NotYetOpen(ExamEngineError):
    code = "EXAM_NOT_YET_OPEN"
    default_message = "Exam has not started yet."

class Closed(ExamEngineError):
    code = "EXAM_CLOSED"
    default_message = "Exam has already ended."


# --- Attempt lifecycle ---
class AttemptLimitReached(ExamEngineError):
    status_code = 409
    code = "ATTEMPT_LIMIT_REACHED"
    default_message = "Maximum attempts reached."

class NoActiveAttempt(ExamEngineError):
    code = "NO_ACTIVE_ATTEMPT"
    default_message = "No active attempt for this exam."

class InvalidState(ExamEngineError):
    status_code = 409
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state."


# --- Input ---
class ValidationError(ExamEngineError):
    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Invalid input."

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)
