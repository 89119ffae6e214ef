from .guard import TenantGuard, ensure_tenant_access
from .resolver import pick_tenant, resolve_tenant_id, single_membership_tenant
from .settings import TenancySettings, get_tenancy_settings

__all__ = [
    "TenancySettings",
    "TenantGuard",
    "ensure_tenant_access",
    "get_tenancy_settings",
    "pick_tenant",
    "resolve_tenant_id",
    "single_membership_tenant",
]
