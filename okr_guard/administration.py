"""
Granting and revoking roles on behalf of an actor.

The store itself only validates tuples. This layer decides who may change
them: the actor needs ``manage_users`` at the target scope, may not grant
themselves anything except the tenant-creation bootstrap, and only tenant
owners can hand out or take away TENANT_OWNER.
"""

import logging
from typing import Any, Optional

from .audit.bus import EventBus, get_event_bus
from .audit.types import AccessEvent, EventType, Outcome
from .decisions import ReasonCode
from .exceptions import AccessDenied, Forbidden, InvalidAssignment, Unauthenticated
from .rbac.resolver import PermissionResolver
from .rbac.types import Action, Principal, Role
from .scopes import ScopeChain, ScopeType, same_id
from .store.base import AssignmentStore, coerce_role, coerce_scope_type

logger = logging.getLogger(__name__)


class RoleAdministration:
    def __init__(
        self,
        store: AssignmentStore,
        *,
        resolver: Optional[PermissionResolver] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.store = store
        self.resolver = resolver or PermissionResolver()
        self._event_bus = event_bus

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    def grant(self, actor: Any, principal_id: Any, role: Any, scope_type: Any, scope_id: Any) -> bool:
        """Assign a role. Returns False when the assignment already existed."""
        actor = Principal.from_user(actor)
        role = coerce_role(role)
        scope_type = coerce_scope_type(scope_type)
        chain = self._chain(role, scope_type, scope_id)

        if not self._is_bootstrap(actor, principal_id, role, scope_type, chain):
            self._authorize(actor, principal_id, role, scope_type, scope_id, chain)

        created = self.store.assign(
            principal_id, role, scope_type, scope_id, granted_by=actor.id
        )
        logger.info(
            "Principal %s granted %s on %s %s to %s",
            actor.id,
            role.value,
            scope_type.value,
            scope_id,
            principal_id,
        )
        self._emit(EventType.ROLE_ASSIGNED, actor, principal_id, role, scope_type, scope_id, chain, created)
        return created

    def revoke(self, actor: Any, principal_id: Any, role: Any, scope_type: Any, scope_id: Any) -> bool:
        """Remove a role. Returns False when there was nothing to remove."""
        actor = Principal.from_user(actor)
        role = coerce_role(role)
        scope_type = coerce_scope_type(scope_type)
        chain = self._chain(role, scope_type, scope_id)
        self._authorize(actor, principal_id, role, scope_type, scope_id, chain)

        removed = self.store.revoke(principal_id, role, scope_type, scope_id)
        logger.info(
            "Principal %s revoked %s on %s %s from %s",
            actor.id,
            role.value,
            scope_type.value,
            scope_id,
            principal_id,
        )
        self._emit(EventType.ROLE_REVOKED, actor, principal_id, role, scope_type, scope_id, chain, removed)
        return removed

    def _chain(self, role: Role, scope_type: ScopeType, scope_id: Any) -> ScopeChain:
        if role.scope_type != scope_type:
            raise InvalidAssignment(
                f"{role.value} can only be granted at {role.scope_type.value} scope"
            )
        chain = self.store.hierarchy.chain_for(scope_type, scope_id)
        if chain is None:
            raise InvalidAssignment(f"{scope_type.value} {scope_id!r} does not exist")
        return chain

    def _is_bootstrap(
        self,
        actor: Principal,
        principal_id: Any,
        role: Role,
        scope_type: ScopeType,
        chain: ScopeChain,
    ) -> bool:
        """The creator of an empty tenant becomes its owner."""
        return (
            actor.is_authenticated
            and not actor.is_superuser
            and same_id(actor.id, principal_id)
            and role == Role.TENANT_OWNER
            and scope_type == ScopeType.TENANT
            and not self.store.tenant_has_assignments(chain.tenant_id)
        )

    def _authorize(
        self,
        actor: Principal,
        principal_id: Any,
        role: Role,
        scope_type: ScopeType,
        scope_id: Any,
        chain: ScopeChain,
    ) -> None:
        try:
            self._check_actor(actor, principal_id, role, chain)
        except AccessDenied as exc:
            self.event_bus.emit(
                AccessEvent(
                    event_type=EventType.ACCESS_DENIED,
                    principal_id=actor.id,
                    action=Action.MANAGE_USERS.value,
                    tenant_id=chain.tenant_id,
                    outcome=Outcome.DENIED,
                    reason=exc.reason,
                    details={
                        "target_principal_id": principal_id,
                        "role": role.value,
                        "scope_type": scope_type.value,
                        "scope_id": scope_id,
                    },
                )
            )
            raise

    def _check_actor(self, actor: Principal, principal_id: Any, role: Role, chain: ScopeChain) -> None:
        if not actor.is_authenticated:
            raise Unauthenticated()
        if same_id(actor.id, principal_id):
            raise Forbidden(
                "Roles cannot be self-granted or self-revoked",
                reason=ReasonCode.ROLE_DENY.value,
            )

        assignments = self.store.list_assignments(actor.id)
        decision = self.resolver.resolve(actor, Action.MANAGE_USERS, chain, assignments)
        if not decision.allowed:
            raise Forbidden(decision.message or None, reason=decision.reason.value)

        if role == Role.TENANT_OWNER:
            is_owner = any(
                a.role == Role.TENANT_OWNER
                and a.scope_type == ScopeType.TENANT
                and same_id(a.scope_id, chain.tenant_id)
                for a in assignments
            )
            if not is_owner:
                raise Forbidden(
                    "Only tenant owners can manage the TENANT_OWNER role",
                    reason=ReasonCode.ROLE_DENY.value,
                )

    def _emit(
        self,
        event_type: EventType,
        actor: Principal,
        principal_id: Any,
        role: Role,
        scope_type: ScopeType,
        scope_id: Any,
        chain: ScopeChain,
        changed: bool,
    ) -> None:
        self.event_bus.emit(
            AccessEvent(
                event_type=event_type,
                principal_id=actor.id,
                action=Action.MANAGE_USERS.value,
                tenant_id=chain.tenant_id,
                outcome=Outcome.ALLOWED,
                reason=ReasonCode.ALLOW.value,
                details={
                    "target_principal_id": principal_id,
                    "role": role.value,
                    "scope_type": scope_type.value,
                    "scope_id": scope_id,
                    "changed": changed,
                },
            )
        )
