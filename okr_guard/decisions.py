"""
Decision values returned by every gate of the access engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .exceptions import (
    AccessDenied,
    Forbidden,
    RateLimited,
    RecordNotFound,
    Unauthenticated,
)


class DenialKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"


class ReasonCode(str, Enum):
    ALLOW = "ALLOW"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    TENANT_CONTEXT_REQUIRED = "TENANT_CONTEXT_REQUIRED"
    TENANT_BOUNDARY = "TENANT_BOUNDARY"
    ROLE_DENY = "ROLE_DENY"
    SUPERUSER_READ_ONLY = "SUPERUSER_READ_ONLY"
    CYCLE_LOCKED = "CYCLE_LOCKED"
    PUBLISH_LOCK = "PUBLISH_LOCK"
    RATE_LIMITED = "RATE_LIMITED"
    PRIVATE_VISIBILITY = "PRIVATE_VISIBILITY"


_EXCEPTIONS: dict[DenialKind, type[AccessDenied]] = {
    DenialKind.UNAUTHENTICATED: Unauthenticated,
    DenialKind.FORBIDDEN: Forbidden,
    DenialKind.RATE_LIMITED: RateLimited,
    DenialKind.NOT_FOUND: RecordNotFound,
}


@dataclass(frozen=True)
class Decision:
    """Outcome of an access check."""

    allowed: bool
    reason: ReasonCode = ReasonCode.ALLOW
    kind: Optional[DenialKind] = None
    message: str = ""
    gate: Optional[str] = None
    retry_after: Optional[int] = None
    bypassed: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls, gate: Optional[str] = None, **kwargs: Any) -> "Decision":
        return cls(allowed=True, gate=gate, **kwargs)

    @classmethod
    def deny(
        cls,
        kind: DenialKind,
        reason: ReasonCode,
        message: str = "",
        gate: Optional[str] = None,
        **kwargs: Any,
    ) -> "Decision":
        return cls(
            allowed=False, reason=reason, kind=kind, message=message, gate=gate, **kwargs
        )

    @classmethod
    def forbidden(cls, reason: ReasonCode, message: str = "", **kwargs: Any) -> "Decision":
        return cls.deny(DenialKind.FORBIDDEN, reason, message, **kwargs)

    def exception(self) -> Optional[AccessDenied]:
        """Build the exception matching this decision, None when allowed."""
        if self.allowed:
            return None
        exc_class = _EXCEPTIONS[self.kind or DenialKind.FORBIDDEN]
        kwargs: dict[str, Any] = {
            "reason": self.reason.value,
            "details": dict(self.details),
        }
        if exc_class is RateLimited:
            kwargs["retry_after"] = self.retry_after or 0
        return exc_class(self.message or None, **kwargs)

    def raise_for_denial(self) -> "Decision":
        exc = self.exception()
        if exc is not None:
            raise exc
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value,
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
            "gate": self.gate,
            "retry_after": self.retry_after,
            "bypassed": self.bypassed,
            "details": self.details,
        }
