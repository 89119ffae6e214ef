"""
Governance guard: cycle locks and the optional publish lock.

Only mutations are checked. Principals holding the bypass capability at
tenant level (tenant owners and admins) pass, and the decision is flagged so
the engine records the bypass.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .config_proxy import get_setting
from .decisions import Decision, ReasonCode
from .rbac.resolver import PermissionResolver
from .rbac.types import Action, Assignment, Capability, Principal
from .resources import Cycle, PublishState, Resource
from .scopes import ScopeChain

logger = logging.getLogger(__name__)

GATE = "governance"

PUBLISH_LOCKED_ACTIONS = frozenset({Action.EDIT_OKR, Action.DELETE_OKR})


@dataclass(frozen=True)
class GovernanceSettings:
    locked_cycle_statuses: tuple[str, ...]
    enforce_publish_lock: bool


def get_governance_settings() -> GovernanceSettings:
    statuses = get_setting("governance_settings.locked_cycle_statuses", ["LOCKED"])
    if isinstance(statuses, str):
        statuses = [statuses]
    return GovernanceSettings(
        locked_cycle_statuses=tuple(str(s).upper() for s in statuses or ()),
        enforce_publish_lock=bool(
            get_setting("governance_settings.enforce_publish_lock", False)
        ),
    )


class GovernanceGuard:
    def __init__(
        self,
        resolver: Optional[PermissionResolver] = None,
        settings: Optional[GovernanceSettings] = None,
    ):
        self.resolver = resolver or PermissionResolver()
        self._settings = settings

    @property
    def settings(self) -> GovernanceSettings:
        return self._settings or get_governance_settings()

    def check(
        self,
        principal: Principal,
        action: Action,
        assignments: Iterable[Assignment],
        *,
        resource: Optional[Resource] = None,
        cycle: Optional[Cycle] = None,
        tenant_id=None,
    ) -> Decision:
        if not action.is_mutation:
            return Decision.allow(gate=GATE)

        cycle = cycle or (resource.cycle if resource is not None else None)
        settings = self.settings
        lock_reason = None
        if cycle is not None and cycle.is_locked(settings.locked_cycle_statuses):
            lock_reason = ReasonCode.CYCLE_LOCKED
        elif (
            settings.enforce_publish_lock
            and resource is not None
            and action in PUBLISH_LOCKED_ACTIONS
            and resource.publish_state == PublishState.PUBLISHED
        ):
            lock_reason = ReasonCode.PUBLISH_LOCK

        if lock_reason is None:
            return Decision.allow(gate=GATE)

        if tenant_id is None:
            tenant_id = resource.tenant_id if resource is not None else cycle.tenant_id
        can_bypass = self.resolver.has_capability(
            principal, Capability.BYPASS_LOCK, ScopeChain(tenant_id=tenant_id), assignments
        )
        if can_bypass:
            logger.info(
                "Principal %s bypassed %s for %s", principal.id, lock_reason.value, action.value
            )
            return Decision.allow(
                gate=GATE, bypassed=True, details={"bypassed_lock": lock_reason.value}
            )

        if lock_reason == ReasonCode.CYCLE_LOCKED:
            message = "The cycle is locked; only tenant owners and admins may change it"
        else:
            message = "Published objectives can only be changed by tenant owners and admins"
        return Decision.forbidden(lock_reason, message, gate=GATE)
