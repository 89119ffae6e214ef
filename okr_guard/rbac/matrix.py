"""
Static role to capability table and the capabilities each action requires.
"""

from .types import Action, Capability, Role

C = Capability

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    # Only honoured at platform scope, see PermissionResolver.
    Role.SUPERUSER: frozenset({C.VIEW, C.REPORT, C.MANAGE_USERS, C.IMPERSONATE}),
    Role.TENANT_OWNER: frozenset(
        {
            C.VIEW,
            C.EDIT,
            C.CONTRIBUTE,
            C.DELETE,
            C.PUBLISH,
            C.BYPASS_LOCK,
            C.MANAGE_USERS,
            C.REPORT,
            C.MANAGE_WORKSPACES,
            C.MANAGE_TEAMS,
            C.MANAGE_TENANT,
            C.MANAGE_BILLING,
        }
    ),
    Role.TENANT_ADMIN: frozenset(
        {
            C.VIEW,
            C.EDIT,
            C.CONTRIBUTE,
            C.DELETE,
            C.PUBLISH,
            C.BYPASS_LOCK,
            C.MANAGE_USERS,
            C.REPORT,
            C.MANAGE_WORKSPACES,
            C.MANAGE_TEAMS,
        }
    ),
    Role.TENANT_VIEWER: frozenset({C.VIEW, C.REPORT}),
    Role.WORKSPACE_LEAD: frozenset(
        {C.VIEW, C.EDIT, C.CONTRIBUTE, C.DELETE, C.PUBLISH, C.MANAGE_USERS, C.MANAGE_TEAMS}
    ),
    Role.WORKSPACE_ADMIN: frozenset({C.VIEW, C.EDIT, C.CONTRIBUTE, C.MANAGE_USERS}),
    Role.WORKSPACE_MEMBER: frozenset({C.VIEW, C.CONTRIBUTE}),
    Role.TEAM_LEAD: frozenset({C.VIEW, C.EDIT, C.CONTRIBUTE, C.DELETE, C.MANAGE_USERS}),
    Role.TEAM_CONTRIBUTOR: frozenset({C.VIEW, C.CONTRIBUTE}),
    Role.TEAM_VIEWER: frozenset({C.VIEW}),
}

# Any one of the listed capabilities is enough.
ACTION_CAPABILITIES: dict[Action, tuple[Capability, ...]] = {
    Action.VIEW_OKR: (C.VIEW,),
    Action.VIEW_ALL_OKRS: (C.REPORT,),
    Action.EXPORT_DATA: (C.REPORT,),
    Action.CREATE_OKR: (C.EDIT,),
    Action.EDIT_OKR: (C.EDIT,),
    Action.DELETE_OKR: (C.DELETE,),
    Action.PUBLISH_OKR: (C.PUBLISH,),
    Action.CREATE_CHECKIN: (C.EDIT, C.CONTRIBUTE),
    Action.UPDATE_OWN_KEY_RESULT: (C.EDIT, C.CONTRIBUTE),
    Action.MANAGE_USERS: (C.MANAGE_USERS,),
    Action.MANAGE_WORKSPACES: (C.MANAGE_WORKSPACES,),
    Action.MANAGE_TEAMS: (C.MANAGE_TEAMS,),
    Action.MANAGE_TENANT_SETTINGS: (C.MANAGE_TENANT,),
    Action.MANAGE_BILLING: (C.MANAGE_BILLING,),
    Action.IMPERSONATE_USER: (C.IMPERSONATE,),
}

# Granted by any assignment inside the tenant, whatever the resource's
# workspace or team. Record-level filtering is the visibility resolver's job.
TENANT_WIDE_CAPABILITIES = frozenset({C.VIEW})

# Satisfied by CONTRIBUTE only when the principal owns the target record.
OWNERSHIP_BOUND_ACTIONS = frozenset({Action.UPDATE_OWN_KEY_RESULT})

# Actions a platform superuser may perform, at platform scope only.
SUPERUSER_PLATFORM_ACTIONS = frozenset({Action.MANAGE_USERS, Action.IMPERSONATE_USER})


def role_allows(role: Role, action: Action) -> bool:
    """Table lookup ignoring scope and ownership."""
    granted = ROLE_CAPABILITIES.get(role, frozenset())
    return any(capability in granted for capability in ACTION_CAPABILITIES[action])


def build_matrix() -> dict[str, dict[str, bool]]:
    """Role -> action -> allowed, for display and audits."""
    return {
        role.value: {action.value: role_allows(role, action) for action in Action}
        for role in sorted(Role, key=lambda r: -r.priority)
    }
