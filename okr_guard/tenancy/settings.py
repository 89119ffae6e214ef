"""
Tenancy settings.
"""

from dataclasses import dataclass
from typing import Any

from ..config_proxy import get_setting


@dataclass(frozen=True)
class TenancySettings:
    require_tenant: bool
    tenant_claim: str
    session_key: str
    allow_cross_tenant_superuser_reads: bool


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return bool(value)


def _coerce_str(value: Any, default: str) -> str:
    if value is None:
        return default
    value = str(value).strip()
    return value or default


def get_tenancy_settings() -> TenancySettings:
    return TenancySettings(
        require_tenant=_coerce_bool(
            get_setting("tenancy_settings.require_tenant", True), True
        ),
        tenant_claim=_coerce_str(
            get_setting("tenancy_settings.tenant_claim", "tenant_id"), "tenant_id"
        ),
        session_key=_coerce_str(
            get_setting("tenancy_settings.session_key", "okr_guard_tenant_id"),
            "okr_guard_tenant_id",
        ),
        allow_cross_tenant_superuser_reads=_coerce_bool(
            get_setting("tenancy_settings.allow_cross_tenant_superuser_reads", True),
            True,
        ),
    )
