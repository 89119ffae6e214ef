import pytest
from django.core.cache import cache

from okr_guard.audit.bus import EventBus, reset_event_bus
from okr_guard.audit.sinks import AuditSink
from okr_guard.config_proxy import clear_runtime_settings
from okr_guard.engine import AccessEngine, set_access_engine
from okr_guard.rate_limiting import MutationRateLimiter, clear_rate_limiter_cache
from okr_guard.rbac import Principal, Role
from okr_guard.scopes import ScopeRegistry
from okr_guard.store import InMemoryAssignmentStore


class RecordingSink(AuditSink):
    def __init__(self):
        self.events = []

    def write(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture(autouse=True)
def _isolate_globals():
    cache.clear()
    yield
    cache.clear()
    clear_runtime_settings()
    clear_rate_limiter_cache()
    reset_event_bus()
    set_access_engine(None)


@pytest.fixture
def registry():
    """Two tenants: t1 holds w1 (team1) and w2 (team2), t2 holds w3."""
    return (
        ScopeRegistry()
        .add_tenant("t1")
        .add_tenant("t2")
        .add_workspace("w1", "t1")
        .add_workspace("w2", "t1")
        .add_workspace("w3", "t2")
        .add_team("team1", "w1")
        .add_team("team2", "w2")
    )


@pytest.fixture
def store(registry):
    return InMemoryAssignmentStore(registry)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def bus(sink):
    return EventBus(async_processing=False).add_sink(sink)


@pytest.fixture
def rate_limiter():
    return MutationRateLimiter(
        {
            "enabled": True,
            "contexts": {
                "mutation": {
                    "rules": [{"name": "minute", "limit": 30, "window_seconds": 60}],
                },
            },
        }
    )


@pytest.fixture
def engine(store, rate_limiter, bus):
    return AccessEngine(store, rate_limiter=rate_limiter, event_bus=bus)


@pytest.fixture
def grant(store):
    """grant("u1", Role.TENANT_ADMIN, "t1") -> Principal("u1")"""

    def _grant(principal_id, role, scope_id):
        role = Role(role)
        store.assign(principal_id, role, role.scope_type, scope_id)
        return Principal(principal_id)

    return _grant


@pytest.fixture
def superuser():
    return Principal("root", is_superuser=True)
