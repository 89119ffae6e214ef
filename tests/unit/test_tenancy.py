"""
Unit tests for tenant resolution, the isolation guard and the middleware.
"""

from types import SimpleNamespace

import jwt
import pytest
from django.test import RequestFactory

from okr_guard.decisions import ReasonCode
from okr_guard.exceptions import Forbidden
from okr_guard.rbac import Action, Principal, Role
from okr_guard.scopes import ScopeChain
from okr_guard.tenancy import (
    TenancySettings,
    TenantGuard,
    ensure_tenant_access,
    pick_tenant,
    resolve_tenant_id,
)
from okr_guard.tenancy.middleware import TenantContextGraphQLMiddleware

pytestmark = pytest.mark.unit

T1 = ScopeChain(tenant_id="t1", workspace_id="w1")


def _settings(**overrides):
    values = {
        "require_tenant": True,
        "tenant_claim": "tenant_id",
        "session_key": "okr_guard_tenant_id",
        "allow_cross_tenant_superuser_reads": True,
    }
    values.update(overrides)
    return TenancySettings(**values)


def _user(pk, is_superuser=False):
    return SimpleNamespace(pk=pk, id=pk, is_authenticated=True, is_superuser=is_superuser)


def test_guard_allows_matching_tenant():
    guard = TenantGuard(_settings())
    assert guard.check(Principal("u1"), Action.EDIT_OKR, T1, "t1").allowed is True


def test_guard_denies_mismatch_regardless_of_action():
    guard = TenantGuard(_settings())
    for action in (Action.VIEW_OKR, Action.EDIT_OKR):
        decision = guard.check(Principal("u1"), action, T1, "t2")
        assert decision.allowed is False
        assert decision.reason == ReasonCode.TENANT_BOUNDARY


def test_guard_requires_tenant_context():
    decision = TenantGuard(_settings()).check(Principal("u1"), Action.VIEW_OKR, T1, None)
    assert decision.reason == ReasonCode.TENANT_CONTEXT_REQUIRED

    relaxed = TenantGuard(_settings(require_tenant=False))
    assert relaxed.check(Principal("u1"), Action.VIEW_OKR, T1, None).allowed is True


def test_guard_denies_platform_targets_to_members():
    decision = TenantGuard(_settings()).check(
        Principal("u1"), Action.MANAGE_USERS, ScopeChain.platform(), "t1"
    )
    assert decision.reason == ReasonCode.TENANT_BOUNDARY


def test_guard_lets_superuser_read_across_tenants():
    guard = TenantGuard(_settings())
    root = Principal("root", is_superuser=True)
    read = guard.check(root, Action.VIEW_OKR, T1, "t2")
    assert read.allowed is True
    assert read.details["cross_tenant"] is True
    assert guard.check(root, Action.EDIT_OKR, T1, "t2").allowed is False

    locked_down = TenantGuard(_settings(allow_cross_tenant_superuser_reads=False))
    assert locked_down.check(root, Action.VIEW_OKR, T1, "t2").allowed is False


def test_cross_tenant_setting_also_covers_superusers_without_tenant():
    root = Principal("root", is_superuser=True)
    assert TenantGuard(_settings()).check(root, Action.VIEW_OKR, T1, None).allowed is True

    locked_down = TenantGuard(_settings(allow_cross_tenant_superuser_reads=False))
    decision = locked_down.check(root, Action.VIEW_OKR, T1, None)
    assert decision.reason == ReasonCode.TENANT_CONTEXT_REQUIRED
    assert locked_down.check(root, Action.VIEW_OKR, T1, "t1").allowed is True
    assert locked_down.check(root, Action.MANAGE_USERS, ScopeChain.platform(), None).allowed is True


def test_ensure_tenant_access_raises_forbidden():
    with pytest.raises(Forbidden) as exc_info:
        ensure_tenant_access(Principal("u1"), Action.VIEW_OKR, T1, "t2")
    assert exc_info.value.reason == "TENANT_BOUNDARY"


def test_pick_tenant_discards_tenants_without_membership(store, grant):
    grant("u1", Role.TEAM_VIEWER, "team1")
    assignments = store.list_assignments("u1")
    assert pick_tenant(Principal("u1"), assignments, ["t2"]) == "t1"
    assert pick_tenant(Principal("u1"), assignments, [None, "t1"]) == "t1"


def test_pick_tenant_needs_a_choice_for_multi_tenant_principals(store, grant):
    grant("u1", Role.TEAM_VIEWER, "team1")
    grant("u1", Role.TENANT_VIEWER, "t2")
    assignments = store.list_assignments("u1")
    assert pick_tenant(Principal("u1"), assignments) is None
    assert pick_tenant(Principal("u1"), assignments, ["t2"]) == "t2"


def test_resolve_tenant_reads_session_before_token(store, grant, settings):
    grant("u1", Role.TENANT_VIEWER, "t1")
    grant("u1", Role.TENANT_VIEWER, "t2")
    token = jwt.encode({"tenant_id": "t2"}, settings.SECRET_KEY, algorithm="HS256")
    request = RequestFactory().get("/", HTTP_AUTHORIZATION=f"Bearer {token}")
    request.user = _user("u1")
    request.session = {"okr_guard_tenant_id": "t1"}

    assert resolve_tenant_id(request, store=store) == "t1"


def test_resolve_tenant_from_signed_claim(store, grant, settings):
    grant("u1", Role.TENANT_VIEWER, "t1")
    grant("u1", Role.TENANT_VIEWER, "t2")
    token = jwt.encode({"tenant_id": "t2"}, settings.SECRET_KEY, algorithm="HS256")
    request = RequestFactory().get("/", HTTP_AUTHORIZATION=f"Bearer {token}")
    request.user = _user("u1")

    assert resolve_tenant_id(request, store=store) == "t2"


def test_resolve_tenant_ignores_forged_tokens_and_headers(store, grant):
    grant("u1", Role.TENANT_VIEWER, "t1")
    grant("u1", Role.TENANT_VIEWER, "t2")
    forged = jwt.encode({"tenant_id": "t2"}, "a-different-secret-key-that-is-long-enough-too", algorithm="HS256")
    request = RequestFactory().get(
        "/?tenant_id=t2", HTTP_AUTHORIZATION=f"Bearer {forged}", HTTP_X_TENANT_ID="t2"
    )
    request.user = _user("u1")

    assert resolve_tenant_id(request, store=store) is None


def test_resolve_tenant_falls_back_to_single_membership(store, grant):
    grant("u1", Role.TEAM_LEAD, "team2")
    request = RequestFactory().get("/")
    request.user = _user("u1")
    assert resolve_tenant_id(request, store=store) == "t1"


def test_resolve_tenant_is_cached_on_request(store, grant):
    grant("u1", Role.TENANT_VIEWER, "t1")
    request = RequestFactory().get("/")
    request.user = _user("u1")
    assert resolve_tenant_id(request, store=store) == "t1"

    store.revoke("u1", Role.TENANT_VIEWER, "TENANT", "t1")
    assert resolve_tenant_id(request, store=store) == "t1"


def test_anonymous_request_has_no_tenant(store):
    request = RequestFactory().get("/")
    request.user = SimpleNamespace(is_authenticated=False)
    assert resolve_tenant_id(request, store=store) is None


def test_graphql_middleware_sets_tenant_on_context(store, grant):
    grant("u1", Role.TENANT_VIEWER, "t1")
    context = RequestFactory().post("/graphql/")
    context.user = _user("u1")
    info = SimpleNamespace(context=context)
    middleware = TenantContextGraphQLMiddleware(store=store)

    result = middleware.resolve(lambda root, info, **kwargs: "ok", None, info)

    assert result == "ok"
    assert context.okr_tenant_id == "t1"
