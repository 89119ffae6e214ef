"""
Unit tests for the audit event bus and sinks.
"""

import json
import logging
from unittest.mock import Mock

import pytest

from okr_guard.audit import (
    AccessEvent,
    AuditSink,
    DatabaseSink,
    EventBus,
    EventType,
    LoggingSink,
    Outcome,
    Severity,
    WebhookSink,
    get_event_bus,
    reset_event_bus,
)
from okr_guard.models import AccessAuditEvent

pytestmark = pytest.mark.unit


def _denied(**kwargs):
    values = {
        "event_type": EventType.ACCESS_DENIED,
        "principal_id": 7,
        "action": "edit_okr",
        "resource_id": 42,
        "tenant_id": 1,
        "reason": "ROLE_DENY",
    }
    values.update(kwargs)
    return AccessEvent(**values)


def test_event_defaults():
    event = _denied()
    assert event.outcome == Outcome.DENIED
    assert event.severity == Severity.WARNING
    assert len(event.correlation_id) == 32
    data = event.to_dict()
    assert data["event_type"] == "access.denied"
    assert data["principal_id"] == 7
    assert data["reason"] == "ROLE_DENY"
    assert "timestamp" in data


def test_superuser_read_defaults_to_info():
    assert AccessEvent(event_type=EventType.SUPERUSER_READ).severity == Severity.INFO


def test_sync_dispatch_reaches_every_sink(sink):
    other = Mock(spec=AuditSink)
    bus = EventBus(async_processing=False).add_sink(sink).add_sink(other)
    event = _denied()
    bus.emit(event)

    assert sink.events == [event]
    other.write.assert_called_once_with(event)


def test_failing_sink_does_not_stop_others(sink):
    failing = Mock(spec=AuditSink)
    failing.write.side_effect = RuntimeError("disk full")
    bus = EventBus(async_processing=False).add_sink(failing).add_sink(sink)

    bus.emit(_denied())

    assert len(sink.events) == 1


def test_async_bus_flushes_on_stop(sink):
    bus = EventBus(async_processing=True).add_sink(sink)
    bus.start()
    for i in range(3):
        bus.emit(_denied(resource_id=i))
    bus.stop()

    assert sorted(e.resource_id for e in sink.events) == [0, 1, 2]


def test_logging_sink_writes_json_at_event_severity(caplog):
    caplog.set_level(logging.INFO, logger="okr_guard.audit")
    LoggingSink().write(_denied())

    record = caplog.records[-1]
    assert record.name == "okr_guard.audit"
    assert record.levelno == logging.WARNING
    assert json.loads(record.getMessage())["action"] == "edit_okr"


def test_webhook_sink_respects_min_severity(monkeypatch):
    post = Mock()
    monkeypatch.setattr("okr_guard.audit.sinks.requests.post", post)
    sink = WebhookSink(url="https://hooks.example.com/audit", min_severity="warning")

    sink.write(AccessEvent(event_type=EventType.ROLE_ASSIGNED, outcome=Outcome.ALLOWED))
    post.assert_not_called()

    sink.write(_denied())
    post.assert_called_once()
    args, kwargs = post.call_args
    assert args == ("https://hooks.example.com/audit",)
    assert json.loads(kwargs["data"])["event_type"] == "access.denied"
    assert kwargs["timeout"] == 5
    post.return_value.raise_for_status.assert_called_once()


@pytest.mark.django_db
def test_database_sink_persists_event():
    event = _denied(details={"gate": "permission"})
    DatabaseSink().write(event)

    stored = AccessAuditEvent.objects.get()
    assert stored.event_type == "access.denied"
    assert stored.outcome == "denied"
    assert stored.principal_id == "7"
    assert stored.resource_id == "42"
    assert stored.details == {"gate": "permission"}


@pytest.mark.django_db
def test_global_bus_uses_configured_sinks(settings):
    settings.OKR_GUARD = {
        "audit_settings": {
            "async_processing": False,
            "store_in_log": False,
            "webhook_url": "https://hooks.example.com/audit",
        }
    }
    reset_event_bus()
    bus = get_event_bus()

    assert [type(s) for s in bus.sinks] == [DatabaseSink, WebhookSink]
    assert get_event_bus() is bus
