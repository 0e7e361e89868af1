"""
Service error taxonomy.

Each error carries the HTTP status it maps to. Expected business outcomes
(a locked limiter, an already-escalated session) are return values, not
exceptions.
"""
from typing import Any, Dict, Optional


class SupportGateError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error_code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.__class__.__doc__ or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def headers(self) -> Dict[str, str]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class RateLimited(SupportGateError):
    """Too many requests. Try again later."""

    status_code = 429
    error_code = "rate_limited"
    retryable = True

    def __init__(self, reset_in_ms: int, message: Optional[str] = None, remaining: int = 0):
        self.reset_in_ms = reset_in_ms
        self.remaining = remaining
        super().__init__(message, details={"resetInMs": reset_in_ms})

    @property
    def reset_in_seconds(self) -> int:
        return -(-self.reset_in_ms // 1000)

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.reset_in_seconds),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }


class Unauthenticated(SupportGateError):
    """Authentication required."""

    status_code = 401
    error_code = "unauthenticated"

    def headers(self) -> Dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class AccessDenied(SupportGateError):
    """Access denied."""

    status_code = 403
    error_code = "access_denied"


class SessionNotFound(SupportGateError):
    """Session not found."""

    status_code = 404
    error_code = "session_not_found"


class EscalationNotFound(SupportGateError):
    """Escalation not found."""

    status_code = 404
    error_code = "escalation_not_found"


class ValidationFailed(SupportGateError):
    """Validation failed."""

    status_code = 400
    error_code = "validation_failed"


class ServiceUnavailable(SupportGateError):
    """Service temporarily unavailable. Retry with backoff."""

    status_code = 503
    error_code = "service_unavailable"
    retryable = True


__all__ = [
    'SupportGateError',
    'RateLimited',
    'Unauthenticated',
    'AccessDenied',
    'SessionNotFound',
    'EscalationNotFound',
    'ValidationFailed',
    'ServiceUnavailable',
]
