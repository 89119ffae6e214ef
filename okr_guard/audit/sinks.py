"""
Audit sinks. A failing sink is logged by the bus and never blocks a decision.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from django.core.serializers.json import DjangoJSONEncoder

from .types import AccessEvent

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = ["debug", "info", "warning", "error", "critical"]


def _none_or_str(value) -> Optional[str]:
    return None if value is None else str(value)


class AuditSink(ABC):
    @abstractmethod
    def write(self, event: AccessEvent) -> None:
        """Write event to the sink."""

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class LoggingSink(AuditSink):
    """Writes events to Python logging as structured JSON."""

    def __init__(self, logger_name: str = "okr_guard.audit"):
        self.logger = logging.getLogger(logger_name)

    def write(self, event: AccessEvent) -> None:
        message = json.dumps(event.to_dict(), cls=DjangoJSONEncoder, ensure_ascii=False)
        level = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }.get(event.severity.value, logging.INFO)
        self.logger.log(level, message)


class DatabaseSink(AuditSink):
    """Writes events to AccessAuditEvent."""

    def write(self, event: AccessEvent) -> None:
        from ..models import AccessAuditEvent

        details = json.loads(json.dumps(event.details, cls=DjangoJSONEncoder))
        AccessAuditEvent.objects.create(
            event_type=event.event_type.value,
            severity=event.severity.value,
            outcome=event.outcome.value,
            reason=event.reason or "",
            principal_id=_none_or_str(event.principal_id),
            action=event.action or "",
            resource_id=_none_or_str(event.resource_id),
            resource_kind=event.resource_kind,
            tenant_id=_none_or_str(event.tenant_id),
            correlation_id=event.correlation_id,
            timestamp=event.timestamp,
            details=details,
        )


class WebhookSink(AuditSink):
    """Posts events at or above ``min_severity`` to an external endpoint."""

    def __init__(
        self,
        url: str,
        timeout: int = 5,
        headers: Optional[dict] = None,
        min_severity: str = "warning",
    ):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {"Content-Type": "application/json"}
        self.min_severity = min_severity

    def _should_send(self, event: AccessEvent) -> bool:
        try:
            event_level = _SEVERITY_ORDER.index(event.severity.value)
            min_level = _SEVERITY_ORDER.index(self.min_severity)
        except ValueError:
            return True
        return event_level >= min_level

    def write(self, event: AccessEvent) -> None:
        if not self._should_send(event):
            return
        response = requests.post(
            self.url,
            data=json.dumps(event.to_dict(), cls=DjangoJSONEncoder),
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
