"""
RBAC types: roles, actions, capabilities, principals and assignments.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..scopes import ScopeType


class Role(str, Enum):
    """Closed set of role tags, grouped by the scope tier they are granted at."""

    SUPERUSER = "SUPERUSER"
    TENANT_OWNER = "TENANT_OWNER"
    TENANT_ADMIN = "TENANT_ADMIN"
    TENANT_VIEWER = "TENANT_VIEWER"
    WORKSPACE_LEAD = "WORKSPACE_LEAD"
    WORKSPACE_ADMIN = "WORKSPACE_ADMIN"
    WORKSPACE_MEMBER = "WORKSPACE_MEMBER"
    TEAM_LEAD = "TEAM_LEAD"
    TEAM_CONTRIBUTOR = "TEAM_CONTRIBUTOR"
    TEAM_VIEWER = "TEAM_VIEWER"

    @property
    def scope_type(self) -> ScopeType:
        return ROLE_SCOPE_TYPES[self]

    @property
    def priority(self) -> int:
        return ROLE_PRIORITY[self]


ROLE_SCOPE_TYPES: dict[Role, ScopeType] = {
    Role.SUPERUSER: ScopeType.PLATFORM,
    Role.TENANT_OWNER: ScopeType.TENANT,
    Role.TENANT_ADMIN: ScopeType.TENANT,
    Role.TENANT_VIEWER: ScopeType.TENANT,
    Role.WORKSPACE_LEAD: ScopeType.WORKSPACE,
    Role.WORKSPACE_ADMIN: ScopeType.WORKSPACE,
    Role.WORKSPACE_MEMBER: ScopeType.WORKSPACE,
    Role.TEAM_LEAD: ScopeType.TEAM,
    Role.TEAM_CONTRIBUTOR: ScopeType.TEAM,
    Role.TEAM_VIEWER: ScopeType.TEAM,
}

ROLE_PRIORITY: dict[Role, int] = {
    Role.SUPERUSER: 100,
    Role.TENANT_OWNER: 90,
    Role.TENANT_ADMIN: 80,
    Role.WORKSPACE_LEAD: 70,
    Role.WORKSPACE_ADMIN: 60,
    Role.TEAM_LEAD: 50,
    Role.WORKSPACE_MEMBER: 40,
    Role.TEAM_CONTRIBUTOR: 30,
    Role.TEAM_VIEWER: 20,
    Role.TENANT_VIEWER: 10,
}


class ActionClass(str, Enum):
    READ = "read"
    MUTATION = "mutation"


class Action(str, Enum):
    VIEW_OKR = "view_okr"
    VIEW_ALL_OKRS = "view_all_okrs"
    EXPORT_DATA = "export_data"
    CREATE_OKR = "create_okr"
    EDIT_OKR = "edit_okr"
    DELETE_OKR = "delete_okr"
    PUBLISH_OKR = "publish_okr"
    CREATE_CHECKIN = "create_checkin"
    UPDATE_OWN_KEY_RESULT = "update_own_key_result"
    MANAGE_USERS = "manage_users"
    MANAGE_WORKSPACES = "manage_workspaces"
    MANAGE_TEAMS = "manage_teams"
    MANAGE_TENANT_SETTINGS = "manage_tenant_settings"
    MANAGE_BILLING = "manage_billing"
    IMPERSONATE_USER = "impersonate_user"

    @property
    def action_class(self) -> ActionClass:
        if self in READ_ACTIONS:
            return ActionClass.READ
        return ActionClass.MUTATION

    @property
    def is_mutation(self) -> bool:
        return self.action_class == ActionClass.MUTATION


READ_ACTIONS = frozenset({Action.VIEW_OKR, Action.VIEW_ALL_OKRS, Action.EXPORT_DATA})


class Capability(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    CONTRIBUTE = "contribute"
    DELETE = "delete"
    PUBLISH = "publish"
    BYPASS_LOCK = "bypass_lock"
    MANAGE_USERS = "manage_users"
    REPORT = "report"
    MANAGE_WORKSPACES = "manage_workspaces"
    MANAGE_TEAMS = "manage_teams"
    MANAGE_TENANT = "manage_tenant"
    MANAGE_BILLING = "manage_billing"
    IMPERSONATE = "impersonate"


@dataclass(frozen=True)
class Principal:
    """The caller of an operation, detached from the user model."""

    id: Any
    is_superuser: bool = False
    is_authenticated: bool = True

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(id=None, is_authenticated=False)

    @classmethod
    def from_user(cls, user: Any) -> "Principal":
        if isinstance(user, Principal):
            return user
        if user is None or not getattr(user, "is_authenticated", False):
            return cls.anonymous()
        user_id = getattr(user, "pk", None)
        if user_id is None:
            user_id = getattr(user, "id", None)
        if user_id is None:
            return cls.anonymous()
        return cls(
            id=user_id,
            is_superuser=bool(getattr(user, "is_superuser", False)),
        )


@dataclass(frozen=True)
class Assignment:
    """A (principal, role, scope) grant. ``tenant_id`` is denormalized."""

    principal_id: Any
    role: Role
    scope_type: ScopeType
    scope_id: Any
    tenant_id: Any = None

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (
            str(self.principal_id),
            self.role.value,
            self.scope_type.value,
            str(self.scope_id),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "principal_id": self.principal_id,
            "role": self.role.value,
            "scope_type": self.scope_type.value,
            "scope_id": self.scope_id,
            "tenant_id": self.tenant_id,
        }


@dataclass
class PermissionExplanation:
    """Why the permission resolver allowed or denied an action."""

    principal_id: Any
    action: Action
    scope: dict[str, Any]
    allowed: bool
    reason: str
    message: str = ""
    is_superuser: bool = False
    required_capabilities: list[str] = field(default_factory=list)
    applicable_assignments: list[dict[str, Any]] = field(default_factory=list)
    effective_roles: list[str] = field(default_factory=list)
    granted_capabilities: list[str] = field(default_factory=list)
    matched_role: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "principal_id": self.principal_id,
            "action": self.action.value,
            "scope": self.scope,
            "allowed": self.allowed,
            "reason": self.reason,
            "message": self.message,
            "is_superuser": self.is_superuser,
            "required_capabilities": self.required_capabilities,
            "applicable_assignments": self.applicable_assignments,
            "effective_roles": self.effective_roles,
            "granted_capabilities": self.granted_capabilities,
            "matched_role": self.matched_role,
        }
