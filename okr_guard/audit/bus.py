"""
Audit event bus.

Events are handed to every sink, either inline or from a background thread.
Sink failures are logged and dropped: the audit trail is a side channel and
never decides access.
"""

import logging
import queue
import threading
from typing import List, Optional

from ..config_proxy import get_setting
from .sinks import AuditSink
from .types import AccessEvent

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self, async_processing: bool = True, max_queue_size: int = 10000):
        self._sinks: List[AuditSink] = []
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._async = async_processing
        self._running = False
        self._worker: Optional[threading.Thread] = None

    @property
    def sinks(self) -> List[AuditSink]:
        return list(self._sinks)

    def add_sink(self, sink: AuditSink) -> "EventBus":
        self._sinks.append(sink)
        return self

    def start(self) -> None:
        """Start the background processing thread."""
        if self._async and not self._running:
            self._running = True
            self._worker = threading.Thread(
                target=self._process_loop, name="okr-guard-audit", daemon=True
            )
            self._worker.start()
            logger.info("Audit event bus started with async processing")

    def stop(self) -> None:
        """Stop processing and flush remaining events."""
        self._running = False
        if self._worker:
            self._worker.join(timeout=5.0)
            self._worker = None
        self._flush_queue()
        for sink in self._sinks:
            sink.close()

    def emit(self, event: AccessEvent) -> None:
        if self._async and self._running:
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                logger.warning("Audit queue full, dropping %s event", event.event_type.value)
        else:
            self._dispatch(event)

    def _process_loop(self) -> None:
        while self._running:
            try:
                event = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue
            self._dispatch(event)

    def _dispatch(self, event: AccessEvent) -> None:
        for sink in self._sinks:
            try:
                sink.write(event)
            except Exception as exc:
                logger.error("Audit sink %s failed: %s", sink.__class__.__name__, exc)

    def _flush_queue(self) -> None:
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            self._dispatch(event)


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get or create the global event bus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = _create_event_bus()
    return _event_bus


def reset_event_bus() -> None:
    global _event_bus
    if _event_bus is not None:
        _event_bus.stop()
    _event_bus = None


def _create_event_bus() -> EventBus:
    from .sinks import DatabaseSink, LoggingSink, WebhookSink

    bus = EventBus(
        async_processing=bool(get_setting("audit_settings.async_processing", True)),
        max_queue_size=int(get_setting("audit_settings.max_queue_size", 10000)),
    )
    if get_setting("audit_settings.store_in_database", True):
        bus.add_sink(DatabaseSink())
    if get_setting("audit_settings.store_in_log", True):
        bus.add_sink(LoggingSink(get_setting("audit_settings.logger_name", "okr_guard.audit")))
    webhook_url = get_setting("audit_settings.webhook_url")
    if webhook_url:
        bus.add_sink(
            WebhookSink(
                url=webhook_url,
                timeout=int(get_setting("audit_settings.webhook_timeout", 5)),
                min_severity=str(get_setting("audit_settings.webhook_min_severity", "warning")),
            )
        )
    bus.start()
    return bus
