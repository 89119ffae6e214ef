"""
Integration tests for the database-backed access engine and the audit command.
"""

import json
from datetime import timedelta
from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from okr_guard.administration import RoleAdministration
from okr_guard.decisions import DenialKind, ReasonCode
from okr_guard.engine import get_access_engine
from okr_guard.models import (
    AccessAuditEvent,
    Cycle,
    KeyResult,
    Objective,
    Team,
    Tenant,
    Workspace,
)
from okr_guard.rbac import Role
from okr_guard.resources import CycleStatus, VisibilityLevel

pytestmark = [pytest.mark.integration, pytest.mark.django_db]


@pytest.fixture
def org():
    """A tenant with one workspace and one team, staffed through the admin API."""
    User = get_user_model()
    tenant = Tenant.objects.create(name="Acme", slug="acme")
    workspace = Workspace.objects.create(tenant=tenant, name="Product")
    team = Team.objects.create(workspace=workspace, name="Growth")
    users = {
        name: User.objects.create_user(username=name, password="pass12345")
        for name in ("founder", "alice", "bob", "carol")
    }

    admin_api = RoleAdministration(get_access_engine().store)
    founder = users["founder"]
    admin_api.grant(founder, founder.pk, Role.TENANT_OWNER, "TENANT", tenant.pk)
    admin_api.grant(founder, users["alice"].pk, Role.TEAM_LEAD, "TEAM", team.pk)
    admin_api.grant(founder, users["bob"].pk, Role.TENANT_VIEWER, "TENANT", tenant.pk)
    admin_api.grant(founder, users["carol"].pk, Role.TEAM_CONTRIBUTOR, "TEAM", team.pk)
    AccessAuditEvent.objects.all().delete()

    return {"tenant": tenant, "workspace": workspace, "team": team, **users}


def _objective(org, **kwargs):
    kwargs.setdefault("title", "Grow revenue")
    return Objective.objects.create(
        tenant=org["tenant"],
        workspace=org["workspace"],
        team=org["team"],
        owner=org["alice"],
        **kwargs,
    )


def test_role_changes_are_audited(org):
    assert AccessAuditEvent.objects.count() == 0
    admin_api = RoleAdministration(get_access_engine().store)
    admin_api.revoke(org["founder"], org["carol"].pk, Role.TEAM_CONTRIBUTOR, "TEAM", org["team"].pk)

    event = AccessAuditEvent.objects.get()
    assert event.event_type == "role.revoked"
    assert event.principal_id == str(org["founder"].pk)
    assert event.details["target_principal_id"] == org["carol"].pk


def test_team_lead_edits_their_objective(org):
    objective = _objective(org)
    engine = get_access_engine()

    assert engine.authorize(org["alice"], "edit_okr", resource=objective).allowed
    denied = engine.authorize(org["bob"], "edit_okr", resource=objective)
    assert denied.reason == ReasonCode.ROLE_DENY
    assert AccessAuditEvent.objects.filter(reason="ROLE_DENY", outcome="denied").count() == 1


def test_locked_cycle_is_enforced_from_the_database(org):
    cycle = Cycle.objects.create(tenant=org["tenant"], name="Q1", status=CycleStatus.LOCKED.value)
    objective = _objective(org, cycle=cycle)
    engine = get_access_engine()

    assert engine.authorize(org["alice"], "edit_okr", resource=objective).reason == ReasonCode.CYCLE_LOCKED
    bypass = engine.authorize(org["founder"], "edit_okr", resource=objective)
    assert bypass.allowed and bypass.bypassed
    assert AccessAuditEvent.objects.filter(event_type="access.governance_bypass").count() == 1


def test_private_objective_and_its_key_results_are_hidden(org):
    private = _objective(org, title="Secret", visibility_level=VisibilityLevel.PRIVATE.value)
    private.whitelist.add(org["bob"])
    key_result = KeyResult.objects.create(objective=private, owner=org["carol"], title="KR")
    public = _objective(org, title="Open")
    engine = get_access_engine()

    assert engine.authorize(org["bob"], "view_okr", resource=private).allowed
    hidden = engine.authorize(org["carol"], "view_okr", resource=key_result)
    assert hidden.kind == DenialKind.NOT_FOUND

    listing = engine.filter_listing(
        org["carol"], Objective.objects.prefetch_related("whitelist").select_related("cycle")
    )
    assert [o.pk for o in listing.items] == [public.pk]
    assert listing.total_count == 1

    owner_listing = engine.filter_listing(org["founder"], Objective.objects.all())
    assert owner_listing.total_count == 2


def test_team_objective_without_workspace_reaches_workspace_lead(org):
    lead = get_user_model().objects.create_user(username="dana", password="pass12345")
    RoleAdministration(get_access_engine().store).grant(
        org["founder"], lead.pk, Role.WORKSPACE_LEAD, "WORKSPACE", org["workspace"].pk
    )
    objective = Objective.objects.create(
        tenant=org["tenant"], team=org["team"], owner=org["alice"], title="Team only"
    )
    key_result = KeyResult.objects.create(objective=objective, owner=org["alice"], title="KR")

    assert objective.as_resource().workspace_id == org["workspace"].pk
    assert key_result.as_resource().workspace_id == org["workspace"].pk
    assert get_access_engine().authorize(lead, "edit_okr", resource=objective).allowed


def test_objective_workspace_must_match_its_team(org):
    other = Workspace.objects.create(tenant=org["tenant"], name="Ops")
    objective = Objective(
        tenant=org["tenant"], workspace=other, team=org["team"], owner=org["alice"], title="Mixed"
    )
    with pytest.raises(ValidationError):
        objective.full_clean()

    objective.save()
    assert objective.as_resource().workspace_id == org["workspace"].pk


def test_legacy_visibility_rows_are_public(org):
    legacy = _objective(org, visibility_level="EXEC_ONLY")
    assert get_access_engine().authorize(org["carol"], "view_okr", resource=legacy).allowed


def test_superuser_reads_are_recorded(org):
    root = get_user_model().objects.create_superuser(username="root", password="pass12345")
    objective = _objective(org)
    engine = get_access_engine()

    assert engine.authorize(root, "view_okr", resource=objective).allowed
    assert engine.authorize(root, "edit_okr", resource=objective).reason == ReasonCode.SUPERUSER_READ_ONLY
    assert AccessAuditEvent.objects.filter(event_type="access.superuser_read").count() == 1


def test_matrix_command_outputs_json():
    out = StringIO()
    call_command("okr_guard_audit", "matrix", "--json", stdout=out)
    matrix = json.loads(out.getvalue())

    assert matrix["TEAM_VIEWER"]["view_okr"] is True
    assert matrix["TEAM_VIEWER"]["edit_okr"] is False
    assert list(matrix)[0] == "SUPERUSER"


def test_matrix_command_outputs_table():
    out = StringIO()
    call_command("okr_guard_audit", "matrix", stdout=out)
    assert "TENANT_OWNER" in out.getvalue()


def test_explain_command(org):
    objective = _objective(org)
    out = StringIO()
    call_command(
        "okr_guard_audit",
        "explain",
        "--user",
        "alice",
        "--action",
        "edit_okr",
        "--objective",
        str(objective.pk),
        stdout=out,
    )
    output = out.getvalue()
    assert "ALLOW" in output
    assert '"matched_role": "TEAM_LEAD"' in output
    assert AccessAuditEvent.objects.count() == 0


def test_explain_command_reports_denials(org):
    out = StringIO()
    call_command(
        "okr_guard_audit",
        "explain",
        "--user",
        "bob",
        "--action",
        "manage_billing",
        "--tenant",
        str(org["tenant"].pk),
        stdout=out,
    )
    assert "DENY (ROLE_DENY)" in out.getvalue()


def test_explain_command_unknown_user():
    with pytest.raises(CommandError, match="not found"):
        call_command("okr_guard_audit", "explain", "--user", "ghost", "--action", "view_okr")


def test_summary_command(org):
    objective = _objective(org)
    get_access_engine().authorize(org["bob"], "delete_okr", resource=objective)

    out = StringIO()
    call_command("okr_guard_audit", "summary", "--hours", "1", stdout=out)
    output = out.getvalue()
    assert "Total events: 1" in output
    assert "ROLE_DENY: 1" in output
    assert f"{org['bob'].pk}: 1" in output


def test_cleanup_command(org):
    old = AccessAuditEvent.objects.create(
        event_type="access.denied",
        outcome="denied",
        timestamp=timezone.now() - timedelta(days=40),
    )
    recent = AccessAuditEvent.objects.create(
        event_type="access.denied",
        outcome="denied",
        timestamp=timezone.now(),
    )

    out = StringIO()
    call_command("okr_guard_audit", "cleanup", "--days", "30", "--dry-run", stdout=out)
    assert "Would delete 1 events" in out.getvalue()
    assert AccessAuditEvent.objects.count() == 2

    call_command("okr_guard_audit", "cleanup", "--days", "30", stdout=StringIO())
    assert list(AccessAuditEvent.objects.values_list("pk", flat=True)) == [recent.pk]
    assert not AccessAuditEvent.objects.filter(pk=old.pk).exists()
