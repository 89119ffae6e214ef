"""
Access engine.

Gates run in a fixed order and the first failure short-circuits:

    authentication -> tenant -> permission -> governance (mutations)
    -> rate limit (mutations) -> visibility (reads of one record)

Every denial and every privileged pass (lock bypass, superuser read of
tenant data) is sent to the audit bus.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .audit.bus import EventBus, get_event_bus
from .audit.types import AccessEvent, EventType, Outcome, Severity
from .config_proxy import get_setting
from .decisions import Decision, DenialKind, ReasonCode
from .governance import GovernanceGuard
from .rate_limiting import MutationRateLimiter, get_rate_limiter
from .rbac.resolver import PermissionResolver, coerce_action
from .rbac.types import Action, PermissionExplanation, Principal
from .resources import Cycle, Resource, as_cycle, as_resource
from .scopes import ScopeChain, ScopeType, same_id
from .store.base import AssignmentStore
from .tenancy.guard import TenantGuard
from .tenancy.resolver import pick_tenant, resolve_tenant_id
from .visibility import ListingResult, VisibilityResolver

logger = logging.getLogger(__name__)


@dataclass
class AccessExplanation:
    """Gate-by-gate account of a decision, without side effects."""

    principal_id: Any
    action: str
    tenant_id: Any
    scope: dict[str, Any]
    decision: Decision
    gates: list[dict[str, Any]] = field(default_factory=list)
    permission: Optional[PermissionExplanation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "principal_id": self.principal_id,
            "action": self.action,
            "tenant_id": self.tenant_id,
            "scope": self.scope,
            "decision": self.decision.to_dict(),
            "gates": self.gates,
            "permission": self.permission.to_dict() if self.permission else None,
        }


class AccessEngine:
    def __init__(
        self,
        store: Optional[AssignmentStore] = None,
        *,
        resolver: Optional[PermissionResolver] = None,
        visibility: Optional[VisibilityResolver] = None,
        tenant_guard: Optional[TenantGuard] = None,
        governance: Optional[GovernanceGuard] = None,
        rate_limiter: Optional[MutationRateLimiter] = None,
        event_bus: Optional[EventBus] = None,
    ):
        if store is None:
            from .store.database import DatabaseAssignmentStore

            store = DatabaseAssignmentStore()
        self.store = store
        self.resolver = resolver or PermissionResolver()
        self.visibility = visibility or VisibilityResolver()
        self.tenant_guard = tenant_guard or TenantGuard()
        self.governance = governance or GovernanceGuard(self.resolver)
        self._rate_limiter = rate_limiter
        self._event_bus = event_bus

    @property
    def rate_limiter(self) -> MutationRateLimiter:
        return self._rate_limiter or get_rate_limiter()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    # --- Decisions ---

    def authorize(
        self,
        principal: Any,
        action: Any,
        *,
        resource: Any = None,
        scope: Optional[ScopeChain] = None,
        cycle: Optional[Cycle] = None,
        tenant_id: Any = None,
        request: Any = None,
    ) -> Decision:
        """Run every gate and return the first denial, or an allow."""
        principal = Principal.from_user(principal)
        action = coerce_action(action)
        resource = as_resource(resource) if resource is not None else None
        target = self._target_scope(resource, scope)

        decision, context = self._run_gates(
            principal,
            action,
            resource=resource,
            target=target,
            cycle=as_cycle(cycle),
            tenant_id=tenant_id,
            request=request,
            consume_rate_limit=True,
        )
        self._record(principal, action, resource, target, context.get("tenant_id"), decision)
        return decision

    def require(self, principal: Any, action: Any, **kwargs: Any) -> Decision:
        """Like authorize, but raise the matching AccessDenied on denial."""
        return self.authorize(principal, action, **kwargs).raise_for_denial()

    def explain(
        self,
        principal: Any,
        action: Any,
        *,
        resource: Any = None,
        scope: Optional[ScopeChain] = None,
        cycle: Optional[Cycle] = None,
        tenant_id: Any = None,
        request: Any = None,
    ) -> AccessExplanation:
        """
        Explain a decision. The rate limiter is not consulted and nothing
        is audited.
        """
        principal = Principal.from_user(principal)
        action = coerce_action(action)
        resource = as_resource(resource) if resource is not None else None
        target = self._target_scope(resource, scope)

        decision, context = self._run_gates(
            principal,
            action,
            resource=resource,
            target=target,
            cycle=as_cycle(cycle),
            tenant_id=tenant_id,
            request=request,
            consume_rate_limit=False,
        )
        permission = None
        if principal.is_authenticated:
            permission = self.resolver.explain(
                principal,
                action,
                target,
                context.get("assignments", ()),
                owner_id=resource.owner_id if resource else None,
            )
        return AccessExplanation(
            principal_id=principal.id,
            action=action.value,
            tenant_id=context.get("tenant_id"),
            scope=target.to_dict(),
            decision=decision,
            gates=[gate.to_dict() for gate in context.get("gates", [])],
            permission=permission,
        )

    def filter_listing(
        self,
        principal: Any,
        records: Iterable[Any],
        *,
        tenant_id: Any = None,
        page: int = 1,
        page_size: Optional[int] = None,
        request: Any = None,
    ) -> ListingResult:
        """
        Visible subset of ``records`` for the principal, paginated after
        filtering so totals never count hidden records.
        """
        principal = Principal.from_user(principal)
        if not principal.is_authenticated:
            decision = self._unauthenticated()
            self._record(principal, Action.VIEW_OKR, None, ScopeChain.platform(), None, decision)
            return ListingResult(permitted=False, decision=decision, page=page, page_size=page_size)

        assignments = list(self.store.list_assignments(principal.id))
        tenant_id = self._resolve_tenant(principal, assignments, tenant_id, request)

        if principal.is_superuser and tenant_id is None:
            if self.tenant_guard.settings.allow_cross_tenant_superuser_reads:
                decision = Decision.allow(gate="permission", details={"cross_tenant": True})
            else:
                decision = Decision.forbidden(
                    ReasonCode.TENANT_CONTEXT_REQUIRED,
                    "Tenant context required",
                    gate="tenant",
                )
        else:
            decision, _ = self._run_gates(
                principal,
                Action.VIEW_OKR,
                resource=None,
                target=ScopeChain(tenant_id=tenant_id),
                cycle=None,
                tenant_id=tenant_id,
                request=None,
                consume_rate_limit=False,
                assignments=assignments,
            )
        target = ScopeChain(tenant_id=tenant_id)
        self._record(principal, Action.VIEW_OKR, None, target, tenant_id, decision)
        if not decision.allowed:
            return ListingResult(permitted=False, decision=decision, page=page, page_size=page_size)

        result = self.visibility.paginate(
            principal,
            records,
            assignments,
            page=page,
            page_size=page_size,
            tenant_id=tenant_id,
        )
        result.decision = decision
        return result

    # --- Internals ---

    def _target_scope(self, resource: Optional[Resource], scope: Optional[ScopeChain]) -> ScopeChain:
        if scope is not None:
            return scope
        if resource is None:
            return ScopeChain.platform()
        chain = resource.scope_chain
        if chain.team_id is None:
            return chain
        # The team decides the workspace, whatever the record itself says.
        team_chain = self.store.hierarchy.chain_for(ScopeType.TEAM, chain.team_id)
        if team_chain is None or not same_id(team_chain.tenant_id, chain.tenant_id):
            return chain
        return ScopeChain(
            tenant_id=chain.tenant_id,
            workspace_id=team_chain.workspace_id,
            team_id=chain.team_id,
        )

    def _resolve_tenant(self, principal: Principal, assignments, tenant_id: Any, request: Any) -> Any:
        if tenant_id is not None:
            return tenant_id
        if request is not None:
            return resolve_tenant_id(request, store=self.store)
        return pick_tenant(principal, assignments)

    def _unauthenticated(self) -> Decision:
        return Decision.deny(
            DenialKind.UNAUTHENTICATED,
            ReasonCode.UNAUTHENTICATED,
            "Authentication required",
            gate="authentication",
        )

    def _run_gates(
        self,
        principal: Principal,
        action: Action,
        *,
        resource: Optional[Resource],
        target: ScopeChain,
        cycle: Optional[Cycle],
        tenant_id: Any,
        request: Any,
        consume_rate_limit: bool,
        assignments: Optional[list] = None,
    ) -> tuple[Decision, dict[str, Any]]:
        gates: list[Decision] = []
        context: dict[str, Any] = {"gates": gates, "tenant_id": tenant_id}

        if not principal.is_authenticated:
            decision = self._unauthenticated()
            gates.append(decision)
            return decision, context

        if assignments is None:
            assignments = list(self.store.list_assignments(principal.id))
        tenant_id = self._resolve_tenant(principal, assignments, tenant_id, request)
        context.update(assignments=assignments, tenant_id=tenant_id)

        tenant_decision = self.tenant_guard.check(principal, action, target, tenant_id)
        gates.append(tenant_decision)
        if not tenant_decision.allowed:
            return tenant_decision, context

        permission = self.resolver.resolve(
            principal,
            action,
            target,
            assignments,
            owner_id=resource.owner_id if resource else None,
        )
        gates.append(permission)
        if not permission.allowed:
            return permission, context

        bypass_details: dict[str, Any] = {}
        if action.is_mutation:
            governance = self.governance.check(
                principal,
                action,
                assignments,
                resource=resource,
                cycle=cycle,
                tenant_id=target.tenant_id,
            )
            gates.append(governance)
            if not governance.allowed:
                return governance, context
            if governance.bypassed:
                bypass_details = dict(governance.details)

            if consume_rate_limit:
                limited = self.rate_limiter.check(principal.id, action)
                if not limited.allowed:
                    decision = Decision.deny(
                        DenialKind.RATE_LIMITED,
                        ReasonCode.RATE_LIMITED,
                        "Too many requests, retry later",
                        gate="rate_limit",
                        retry_after=limited.retry_after,
                        details={"rule": limited.rule.name if limited.rule else None},
                    )
                    gates.append(decision)
                    return decision, context
                gates.append(Decision.allow(gate="rate_limit"))

        elif resource is not None:
            if not self.visibility.is_visible(principal, resource, assignments):
                decision = Decision.deny(
                    DenialKind.NOT_FOUND,
                    ReasonCode.PRIVATE_VISIBILITY,
                    "Record not found",
                    gate="visibility",
                )
                gates.append(decision)
                return decision, context
            gates.append(Decision.allow(gate="visibility"))

        details = dict(permission.details)
        details.update(tenant_decision.details)
        details.update(bypass_details)
        return Decision.allow(bypassed=bool(bypass_details), details=details), context

    def _record(
        self,
        principal: Principal,
        action: Action,
        resource: Optional[Resource],
        target: ScopeChain,
        tenant_id: Any,
        decision: Decision,
    ) -> None:
        event_type = None
        severity = None
        if not decision.allowed:
            level = logging.INFO if decision.kind == DenialKind.NOT_FOUND else logging.WARNING
            logger.log(
                level,
                "Denied %s for principal %s: %s",
                action.value,
                principal.id,
                decision.reason.value,
            )
            if not get_setting("access_settings.audit_denials", True):
                return
            event_type = EventType.ACCESS_DENIED
            if decision.kind == DenialKind.RATE_LIMITED:
                event_type = EventType.RATE_LIMIT_EXCEEDED
            elif decision.kind == DenialKind.NOT_FOUND:
                severity = Severity.INFO
        elif decision.bypassed:
            event_type = EventType.GOVERNANCE_BYPASS
        elif (
            principal.is_superuser
            and not action.is_mutation
            and (not target.is_platform or decision.details.get("cross_tenant"))
            and get_setting("access_settings.audit_privileged_reads", True)
        ):
            event_type = EventType.SUPERUSER_READ
        if event_type is None:
            return

        self.event_bus.emit(
            AccessEvent(
                event_type=event_type,
                principal_id=principal.id,
                action=action.value,
                resource_id=resource.id if resource else None,
                resource_kind=resource.kind.value if resource else None,
                tenant_id=target.tenant_id if target.tenant_id is not None else tenant_id,
                outcome=Outcome.ALLOWED if decision.allowed else Outcome.DENIED,
                reason=decision.reason.value,
                severity=severity,
                details={
                    "gate": decision.gate,
                    "request_tenant_id": tenant_id,
                    **decision.details,
                },
            )
        )


_access_engine: Optional[AccessEngine] = None


def get_access_engine() -> AccessEngine:
    """Get or create the global engine backed by the database store."""
    global _access_engine
    if _access_engine is None:
        _access_engine = AccessEngine()
    return _access_engine


def set_access_engine(engine: Optional[AccessEngine]) -> None:
    global _access_engine
    _access_engine = engine
