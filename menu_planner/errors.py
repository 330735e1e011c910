"""
Domain error taxonomy.
Services raise these; main.py turns them into the JSON error envelope:
{"error": {"code", "message", "details", "retryable", "timestamp"}}
"""
from typing import Any, Optional


class MenuPlannerError(Exception):
    """Base class for every error the API reports with a stable code"""
    code = "INTERNAL_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MenuPlannerError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(MenuPlannerError):
    code = "AUTH_ERROR"
    status_code = 401


class ForbiddenError(MenuPlannerError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(MenuPlannerError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(MenuPlannerError):
    """Stale write: the meal changed since the caller last read it"""
    code = "CONFLICT"
    status_code = 409
    retryable = True


class AIServiceError(MenuPlannerError):
    code = "AI_ERROR"
    status_code = 502


class AITimeoutError(AIServiceError):
    code = "AI_TIMEOUT"
    status_code = 504
    retryable = True


class AIRateLimitError(AIServiceError):
    code = "AI_RATE_LIMITED"
    status_code = 429
    retryable = True


class DatabaseError(MenuPlannerError):
    code = "DATABASE_ERROR"
    status_code = 503
    retryable = True
