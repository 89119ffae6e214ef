"""
Tenant isolation guard, the first gate of every decision.
"""

import logging
from typing import Any, Optional

from ..decisions import Decision, ReasonCode
from ..exceptions import Forbidden
from ..rbac.types import Action, Principal
from ..scopes import ScopeChain, same_id
from .settings import TenancySettings, get_tenancy_settings

logger = logging.getLogger(__name__)

GATE = "tenant"


class TenantGuard:
    def __init__(self, settings: Optional[TenancySettings] = None):
        self._settings = settings

    @property
    def settings(self) -> TenancySettings:
        return self._settings or get_tenancy_settings()

    def check(
        self,
        principal: Principal,
        action: Action,
        scope: ScopeChain,
        tenant_id: Any,
    ) -> Decision:
        """Compare the request tenant with the target's tenant."""
        if principal.is_superuser:
            return self._check_superuser(action, scope, tenant_id)

        missing_tenant = tenant_id in (None, "")
        if missing_tenant and self.settings.require_tenant:
            return Decision.forbidden(
                ReasonCode.TENANT_CONTEXT_REQUIRED,
                "Tenant context required",
                gate=GATE,
            )

        if scope.is_platform:
            return Decision.forbidden(
                ReasonCode.TENANT_BOUNDARY,
                "Platform resources are reserved to superusers",
                gate=GATE,
            )

        if not missing_tenant and not same_id(tenant_id, scope.tenant_id):
            logger.warning(
                "Tenant boundary: principal %s in tenant %s targeted tenant %s",
                principal.id,
                tenant_id,
                scope.tenant_id,
            )
            return Decision.forbidden(
                ReasonCode.TENANT_BOUNDARY, "Tenant access denied", gate=GATE
            )
        return Decision.allow(gate=GATE)

    def _check_superuser(self, action: Action, scope: ScopeChain, tenant_id: Any) -> Decision:
        cross_tenant = not scope.is_platform and not same_id(tenant_id, scope.tenant_id)
        if not cross_tenant:
            return Decision.allow(gate=GATE, details={"cross_tenant": False})
        missing_tenant = tenant_id in (None, "")
        if action.is_mutation:
            if missing_tenant:
                # Refused as SUPERUSER_READ_ONLY by the permission gate.
                return Decision.allow(gate=GATE, details={"cross_tenant": True})
            return Decision.forbidden(
                ReasonCode.TENANT_BOUNDARY, "Tenant access denied", gate=GATE
            )
        if self.settings.allow_cross_tenant_superuser_reads:
            return Decision.allow(gate=GATE, details={"cross_tenant": True})
        if missing_tenant:
            return Decision.forbidden(
                ReasonCode.TENANT_CONTEXT_REQUIRED, "Tenant context required", gate=GATE
            )
        return Decision.forbidden(
            ReasonCode.TENANT_BOUNDARY, "Tenant access denied", gate=GATE
        )


def ensure_tenant_access(
    principal: Principal, action: Action, scope: ScopeChain, tenant_id: Any
) -> None:
    decision = TenantGuard().check(principal, action, scope, tenant_id)
    if not decision.allowed:
        raise Forbidden(decision.message, reason=decision.reason.value)
