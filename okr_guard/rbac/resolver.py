"""
Permission resolution.

The resolver is a pure function of the principal, the action, the scope chain
of the target and the principal's assignments. It never reads storage, so the
same instance can be shared across threads.
"""

import logging
from typing import Any, Iterable, Optional

from ..decisions import Decision, ReasonCode
from ..scopes import ScopeChain, ScopeType, same_id
from .matrix import (
    ACTION_CAPABILITIES,
    OWNERSHIP_BOUND_ACTIONS,
    ROLE_CAPABILITIES,
    SUPERUSER_PLATFORM_ACTIONS,
    TENANT_WIDE_CAPABILITIES,
)
from .types import (
    Action,
    Assignment,
    Capability,
    PermissionExplanation,
    Principal,
    Role,
)

logger = logging.getLogger(__name__)

GATE = "permission"


def coerce_action(action: Any) -> Action:
    if isinstance(action, Action):
        return action
    return Action(str(action))


class PermissionResolver:
    """Decides ALLOW/DENY for (principal, action, scope chain)."""

    def tenant_assignments(
        self, assignments: Iterable[Assignment], tenant_id: Any
    ) -> list[Assignment]:
        return [a for a in assignments if same_id(a.tenant_id, tenant_id)]

    def applicable_assignments(
        self, assignments: Iterable[Assignment], scope: ScopeChain
    ) -> list[Assignment]:
        """Assignments at the scope's tenant, workspace or team."""
        return [
            a
            for a in self.tenant_assignments(assignments, scope.tenant_id)
            if scope.contains(a.scope_type, a.scope_id)
        ]

    def effective_roles(self, assignments: Iterable[Assignment]) -> list[Role]:
        """Distinct roles, most privileged first."""
        roles = {a.role for a in assignments}
        return sorted(roles, key=lambda role: -role.priority)

    def capabilities(
        self, assignments: Iterable[Assignment], scope: ScopeChain
    ) -> set[Capability]:
        """Union of capabilities granted to the principal for this scope chain."""
        granted: set[Capability] = set()
        for assignment in self.applicable_assignments(assignments, scope):
            granted |= ROLE_CAPABILITIES.get(assignment.role, frozenset())
        for assignment in self.tenant_assignments(assignments, scope.tenant_id):
            granted |= ROLE_CAPABILITIES.get(assignment.role, frozenset()) & TENANT_WIDE_CAPABILITIES
        return granted

    def has_capability(
        self,
        principal: Principal,
        capability: Capability,
        scope: ScopeChain,
        assignments: Iterable[Assignment],
    ) -> bool:
        if principal.is_superuser or scope.is_platform:
            return False
        return capability in self.capabilities(assignments, scope)

    def resolve(
        self,
        principal: Principal,
        action: Any,
        scope: ScopeChain,
        assignments: Iterable[Assignment],
        *,
        owner_id: Any = None,
    ) -> Decision:
        explanation = self.explain(
            principal, action, scope, assignments, owner_id=owner_id
        )
        if explanation.allowed:
            return Decision.allow(
                gate=GATE, details={"matched_role": explanation.matched_role}
            )
        return Decision.forbidden(
            ReasonCode(explanation.reason), explanation.message, gate=GATE
        )

    def explain(
        self,
        principal: Principal,
        action: Any,
        scope: ScopeChain,
        assignments: Iterable[Assignment],
        *,
        owner_id: Any = None,
    ) -> PermissionExplanation:
        action = coerce_action(action)
        assignments = list(assignments)
        required = ACTION_CAPABILITIES[action]
        explanation = PermissionExplanation(
            principal_id=principal.id,
            action=action,
            scope=scope.to_dict(),
            allowed=False,
            reason=ReasonCode.ROLE_DENY.value,
            is_superuser=principal.is_superuser,
            required_capabilities=[c.value for c in required],
        )

        if principal.is_superuser:
            return self._explain_superuser(explanation, action, scope)

        if scope.is_platform:
            explanation.message = "Platform-level actions require a superuser"
            return explanation

        if not self.tenant_assignments(assignments, scope.tenant_id):
            explanation.message = "Principal has no role in this tenant"
            return explanation

        applicable = self.applicable_assignments(assignments, scope)
        granted = self.capabilities(assignments, scope)
        explanation.applicable_assignments = [a.to_dict() for a in applicable]
        explanation.effective_roles = [r.value for r in self.effective_roles(applicable)]
        explanation.granted_capabilities = sorted(c.value for c in granted)

        matched = [c for c in required if c in granted]
        if (
            action in OWNERSHIP_BOUND_ACTIONS
            and matched == [Capability.CONTRIBUTE]
            and not same_id(owner_id, principal.id)
        ):
            explanation.message = "Contributors may only update records they own"
            return explanation

        if not matched:
            explanation.message = f"No role grants '{action.value}' for this scope"
            return explanation

        explanation.allowed = True
        explanation.reason = ReasonCode.ALLOW.value
        explanation.matched_role = self._matched_role(assignments, scope, matched)
        return explanation

    def _explain_superuser(
        self, explanation: PermissionExplanation, action: Action, scope: ScopeChain
    ) -> PermissionExplanation:
        explanation.effective_roles = [Role.SUPERUSER.value]
        explanation.matched_role = Role.SUPERUSER.value
        if not action.is_mutation:
            explanation.allowed = True
            explanation.reason = ReasonCode.ALLOW.value
            return explanation
        if action in SUPERUSER_PLATFORM_ACTIONS and scope.is_platform:
            explanation.allowed = True
            explanation.reason = ReasonCode.ALLOW.value
            return explanation
        explanation.matched_role = None
        explanation.reason = ReasonCode.SUPERUSER_READ_ONLY.value
        explanation.message = "Superusers have read-only access to tenant data"
        return explanation

    def _matched_role(
        self,
        assignments: list[Assignment],
        scope: ScopeChain,
        matched: list[Capability],
    ) -> Optional[str]:
        candidates = self.applicable_assignments(assignments, scope)
        if matched == [Capability.VIEW]:
            candidates = self.tenant_assignments(assignments, scope.tenant_id)
        for role in self.effective_roles(candidates):
            if any(c in ROLE_CAPABILITIES.get(role, frozenset()) for c in matched):
                return role.value
        return None


def tenant_ids_for(assignments: Iterable[Assignment]) -> set[Any]:
    """Tenants the principal holds at least one assignment in."""
    return {a.tenant_id for a in assignments if a.tenant_id is not None}


def scope_type_matches(role: Role, scope_type: ScopeType) -> bool:
    return role.scope_type == scope_type
