"""
Persistence for the scope hierarchy, role assignments, OKR records and the
access audit trail.
"""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .rbac.types import Assignment, Role
from .resources import (
    Cycle as CycleValue,
    CycleStatus,
    LEGACY_VISIBILITY_LEVELS,
    PublishState,
    Resource,
    ResourceKind,
    VisibilityLevel,
    coerce_visibility,
)
from .scopes import ScopeType

ROLE_CHOICES = [(role.value, role.value.replace("_", " ").title()) for role in Role if role != Role.SUPERUSER]
SCOPE_TYPE_CHOICES = [
    (ScopeType.TENANT.value, "Tenant"),
    (ScopeType.WORKSPACE.value, "Workspace"),
    (ScopeType.TEAM.value, "Team"),
]
CYCLE_STATUS_CHOICES = [(status.value, status.value.title()) for status in CycleStatus]
PUBLISH_STATE_CHOICES = [(state.value, state.value.title()) for state in PublishState]
VISIBILITY_CHOICES = [(level.value, level.value) for level in VisibilityLevel] + [
    (level, level) for level in sorted(LEGACY_VISIBILITY_LEVELS)
]


class Tenant(models.Model):
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "okr_guard"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Workspace(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="workspaces")
    name = models.CharField(max_length=200)

    class Meta:
        app_label = "okr_guard"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Team(models.Model):
    workspace = models.ForeignKey(Workspace, on_delete=models.CASCADE, related_name="teams")
    name = models.CharField(max_length=200)

    class Meta:
        app_label = "okr_guard"
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def tenant_id(self):
        return self.workspace.tenant_id


class RoleAssignment(models.Model):
    """A role held by a user at one tenant, workspace or team."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="okr_role_assignments",
    )
    role = models.CharField(max_length=32, choices=ROLE_CHOICES)
    scope_type = models.CharField(max_length=16, choices=SCOPE_TYPE_CHOICES)
    scope_id = models.CharField(max_length=64)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="role_assignments")
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "okr_guard"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "role", "scope_type", "scope_id"],
                name="okr_guard_unique_role_assignment",
            )
        ]
        indexes = [
            models.Index(fields=["tenant", "scope_type"], name="okr_guard_assign_scope_idx")
        ]

    def __str__(self):
        return f"{self.user_id}:{self.role}@{self.scope_type}:{self.scope_id}"

    def as_assignment(self) -> Assignment:
        return Assignment(
            principal_id=self.user_id,
            role=Role(self.role),
            scope_type=ScopeType(self.scope_type),
            scope_id=self.scope_id,
            tenant_id=self.tenant_id,
        )


class Cycle(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="cycles")
    name = models.CharField(max_length=200)
    status = models.CharField(
        max_length=16, choices=CYCLE_STATUS_CHOICES, default=CycleStatus.DRAFT.value
    )
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)

    class Meta:
        app_label = "okr_guard"
        ordering = ["-start_date", "name"]

    def __str__(self):
        return self.name

    def as_cycle(self) -> CycleValue:
        return CycleValue(id=self.pk, tenant_id=self.tenant_id, status=CycleStatus(self.status))


class Objective(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="objectives")
    workspace = models.ForeignKey(
        Workspace, on_delete=models.SET_NULL, null=True, blank=True, related_name="objectives"
    )
    team = models.ForeignKey(
        Team, on_delete=models.SET_NULL, null=True, blank=True, related_name="objectives"
    )
    cycle = models.ForeignKey(
        Cycle, on_delete=models.SET_NULL, null=True, blank=True, related_name="objectives"
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="okr_owned_objectives",
    )
    title = models.CharField(max_length=500)
    status = models.CharField(max_length=32, default="NOT_STARTED")
    publish_state = models.CharField(
        max_length=16, choices=PUBLISH_STATE_CHOICES, default=PublishState.DRAFT.value
    )
    visibility_level = models.CharField(
        max_length=32, choices=VISIBILITY_CHOICES, default=VisibilityLevel.PUBLIC_TENANT.value
    )
    whitelist = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name="okr_whitelisted_objectives"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "okr_guard"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.title

    @property
    def scope_workspace_id(self):
        """The team's workspace when a team is set, else the stored workspace."""
        if self.team_id:
            return self.team.workspace_id
        return self.workspace_id

    def clean(self):
        super().clean()
        if self.team_id and self.workspace_id and self.team.workspace_id != self.workspace_id:
            raise ValidationError(
                {"workspace": "The team belongs to another workspace."}
            )
        if self.workspace_id and self.workspace.tenant_id != self.tenant_id:
            raise ValidationError(
                {"workspace": "The workspace belongs to another tenant."}
            )

    def as_resource(self) -> Resource:
        visibility = coerce_visibility(self.visibility_level)
        whitelist = frozenset()
        if visibility == VisibilityLevel.PRIVATE and self.pk:
            # Uses prefetch_related("whitelist") when the queryset provides it.
            whitelist = frozenset(user.pk for user in self.whitelist.all())
        return Resource(
            id=self.pk,
            tenant_id=self.tenant_id,
            kind=ResourceKind.OBJECTIVE,
            owner_id=self.owner_id,
            workspace_id=self.scope_workspace_id,
            team_id=self.team_id,
            status=self.status,
            publish_state=PublishState(self.publish_state),
            visibility=visibility,
            whitelist=whitelist,
            cycle=self.cycle.as_cycle() if self.cycle_id else None,
        )


class _ObjectiveChild(models.Model):
    """Key results and initiatives share the parent's scope and cycle."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    title = models.CharField(max_length=500)
    status = models.CharField(max_length=32, default="NOT_STARTED")

    resource_kind = ResourceKind.KEY_RESULT

    class Meta:
        abstract = True

    def __str__(self):
        return self.title

    def as_resource(self) -> Resource:
        parent = self.objective.as_resource()
        return Resource(
            id=self.pk,
            tenant_id=parent.tenant_id,
            kind=self.resource_kind,
            owner_id=self.owner_id,
            workspace_id=parent.workspace_id,
            team_id=parent.team_id,
            status=self.status,
            publish_state=parent.publish_state,
            visibility=None,
            parent_id=parent.id,
            parent=parent,
            cycle=parent.cycle,
        )


class KeyResult(_ObjectiveChild):
    objective = models.ForeignKey(Objective, on_delete=models.CASCADE, related_name="key_results")
    progress = models.FloatField(default=0)

    resource_kind = ResourceKind.KEY_RESULT

    class Meta:
        app_label = "okr_guard"
        ordering = ["id"]


class Initiative(_ObjectiveChild):
    objective = models.ForeignKey(Objective, on_delete=models.CASCADE, related_name="initiatives")
    key_result = models.ForeignKey(
        KeyResult, on_delete=models.SET_NULL, null=True, blank=True, related_name="initiatives"
    )

    resource_kind = ResourceKind.INITIATIVE

    class Meta:
        app_label = "okr_guard"
        ordering = ["id"]


class AccessAuditEvent(models.Model):
    """Denials and privileged accesses, written by the database audit sink."""

    event_type = models.CharField(max_length=50, db_index=True)
    severity = models.CharField(max_length=20, default="info")
    outcome = models.CharField(max_length=20)
    reason = models.CharField(max_length=50, blank=True)
    principal_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    action = models.CharField(max_length=50, blank=True)
    resource_id = models.CharField(max_length=64, null=True, blank=True)
    resource_kind = models.CharField(max_length=20, null=True, blank=True)
    tenant_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    correlation_id = models.CharField(max_length=64, null=True, blank=True)
    timestamp = models.DateTimeField(db_index=True)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        app_label = "okr_guard"
        ordering = ["-timestamp"]

    def __str__(self):
        return f"{self.event_type} {self.outcome} {self.principal_id}"
