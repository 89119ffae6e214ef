"""
Audit event types.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from django.utils import timezone


class EventType(str, Enum):
    ACCESS_DENIED = "access.denied"
    RATE_LIMIT_EXCEEDED = "access.rate_limited"
    GOVERNANCE_BYPASS = "access.governance_bypass"
    SUPERUSER_READ = "access.superuser_read"
    ROLE_ASSIGNED = "role.assigned"
    ROLE_REVOKED = "role.revoked"


class Outcome(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


class Severity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


DEFAULT_SEVERITY: dict[EventType, Severity] = {
    EventType.ACCESS_DENIED: Severity.WARNING,
    EventType.RATE_LIMIT_EXCEEDED: Severity.WARNING,
    EventType.GOVERNANCE_BYPASS: Severity.WARNING,
    EventType.SUPERUSER_READ: Severity.INFO,
    EventType.ROLE_ASSIGNED: Severity.INFO,
    EventType.ROLE_REVOKED: Severity.INFO,
}


@dataclass
class AccessEvent:
    """One audit record: who tried what on which resource, and the outcome."""

    event_type: EventType
    principal_id: Any = None
    action: str = ""
    resource_id: Any = None
    resource_kind: Optional[str] = None
    tenant_id: Any = None
    outcome: Outcome = Outcome.DENIED
    reason: str = ""
    severity: Optional[Severity] = None
    timestamp: datetime = field(default_factory=timezone.now)
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.severity is None:
            self.severity = DEFAULT_SEVERITY.get(self.event_type, Severity.INFO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "principal_id": self.principal_id,
            "action": self.action,
            "resource_id": self.resource_id,
            "resource_kind": self.resource_kind,
            "tenant_id": self.tenant_id,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "details": self.details,
        }
