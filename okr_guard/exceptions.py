"""
Exceptions raised by the access engine.

Every denial maps to one of four kinds. Unauthenticated, Forbidden and
RateLimited are distinguishable errors. RecordNotFound is used when a record
is hidden by its visibility, so callers render it as absence rather than as a
refusal that would confirm the record exists.
"""

from typing import Any, Optional


class AccessDenied(Exception):
    """Base class for all access denials."""

    default_message = "Access denied"
    code = "ACCESS_DENIED"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.reason = reason or self.code
        self.details = details or {}
        super().__init__(self.message)


class Unauthenticated(AccessDenied):
    default_message = "Authentication required"
    code = "UNAUTHENTICATED"


class Forbidden(AccessDenied):
    default_message = "You do not have permission to perform this action"
    code = "FORBIDDEN"


class RateLimited(AccessDenied):
    default_message = "Too many requests"
    code = "RATE_LIMITED"

    def __init__(self, message: Optional[str] = None, *, retry_after: int = 0, **kwargs):
        self.retry_after = int(retry_after or 0)
        super().__init__(message, **kwargs)


class RecordNotFound(AccessDenied):
    default_message = "Record not found"
    code = "NOT_FOUND"


class InvalidAssignment(ValueError):
    """Raised when a role assignment does not fit the scope hierarchy."""
