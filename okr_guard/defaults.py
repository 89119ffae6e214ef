"""
Library defaults for okr-guard.

Every key can be overridden through the ``OKR_GUARD`` dict in Django settings,
using the same section layout.
"""

from typing import Any

LIBRARY_DEFAULTS: dict[str, Any] = {
    "access_settings": {
        # Cached assignment reads are invalidated on every write, the TTL
        # bounds staleness for writes made outside this process.
        "assignment_cache_enabled": True,
        "assignment_cache_ttl_seconds": 300,
        "audit_denials": True,
        "audit_privileged_reads": True,
    },
    "tenancy_settings": {
        "require_tenant": True,
        "tenant_claim": "tenant_id",
        "session_key": "okr_guard_tenant_id",
        "allow_cross_tenant_superuser_reads": True,
    },
    "governance_settings": {
        "locked_cycle_statuses": ["LOCKED"],
        "enforce_publish_lock": False,
    },
    "rate_limiting": {
        "enabled": True,
        "contexts": {
            "mutation": {
                "enabled": True,
                "rules": [
                    {"name": "principal_minute", "limit": 30, "window_seconds": 60},
                ],
            },
        },
    },
    "audit_settings": {
        "async_processing": True,
        "max_queue_size": 10000,
        "store_in_database": True,
        "store_in_log": True,
        "logger_name": "okr_guard.audit",
        "webhook_url": None,
        "webhook_timeout": 5,
        "webhook_min_severity": "warning",
    },
}
