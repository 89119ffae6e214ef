"""
Write-only audit trail for denials and privileged access.
"""

from .bus import EventBus, get_event_bus, reset_event_bus
from .sinks import AuditSink, DatabaseSink, LoggingSink, WebhookSink
from .types import AccessEvent, EventType, Outcome, Severity

__all__ = [
    "AccessEvent",
    "AuditSink",
    "DatabaseSink",
    "EventBus",
    "EventType",
    "LoggingSink",
    "Outcome",
    "Severity",
    "WebhookSink",
    "get_event_bus",
    "reset_event_bus",
]
