"""
ORM-backed assignment store with a versioned per-principal cache.

Each principal has a cache version key. Writes bump the version, which
orphans every cached read for that principal; the TTL bounds staleness for
writes that bypass this store (raw SQL, other services).
"""

import logging
from typing import Any, FrozenSet, Optional

from django.core.cache import cache
from django.db import IntegrityError, transaction

from ..config_proxy import get_setting
from ..models import RoleAssignment, Team, Tenant, Workspace
from ..rbac.types import Assignment, Role
from ..scopes import ScopeChain, ScopeHierarchy, ScopeType
from .base import AssignmentStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "okr_guard:assign"
CACHE_VERSION_PREFIX = "okr_guard:assign:ver"


def _get_cache_version(principal_id: Any) -> int:
    cache_key = f"{CACHE_VERSION_PREFIX}:{principal_id}"
    version = cache.get(cache_key)
    if version is None:
        cache.add(cache_key, 1, timeout=None)
        return int(cache.get(cache_key) or 1)
    try:
        return int(version)
    except (TypeError, ValueError):
        return 1


def bump_principal_cache_version(principal_id: Any) -> None:
    """Invalidate every cached assignment read for the principal."""
    if principal_id is None:
        return
    cache_key = f"{CACHE_VERSION_PREFIX}:{principal_id}"
    try:
        cache.incr(cache_key)
    except ValueError:
        # Missing key: any fresh version differs from the cached entries.
        cache.set(cache_key, 2, timeout=None)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class DatabaseScopeHierarchy(ScopeHierarchy):
    def chain_for(self, scope_type: ScopeType, scope_id: Any) -> Optional[ScopeChain]:
        pk = _as_int(scope_id)
        if pk is None:
            return None
        if scope_type == ScopeType.TENANT:
            if Tenant.objects.filter(pk=pk).exists():
                return ScopeChain(tenant_id=pk)
            return None
        if scope_type == ScopeType.WORKSPACE:
            tenant_id = (
                Workspace.objects.filter(pk=pk).values_list("tenant_id", flat=True).first()
            )
            if tenant_id is None:
                return None
            return ScopeChain(tenant_id=tenant_id, workspace_id=pk)
        if scope_type == ScopeType.TEAM:
            row = (
                Team.objects.filter(pk=pk)
                .values_list("workspace_id", "workspace__tenant_id")
                .first()
            )
            if row is None:
                return None
            return ScopeChain(tenant_id=row[1], workspace_id=row[0], team_id=pk)
        return None


class DatabaseAssignmentStore(AssignmentStore):
    def __init__(self, hierarchy: Optional[ScopeHierarchy] = None):
        super().__init__(hierarchy or DatabaseScopeHierarchy())
        self._cache_enabled = bool(
            get_setting("access_settings.assignment_cache_enabled", True)
        )
        self._cache_ttl = int(
            get_setting("access_settings.assignment_cache_ttl_seconds", 300)
        )

    def _cache_key(self, principal_id: Any) -> Optional[str]:
        if not self._cache_enabled or not self._cache_ttl or principal_id is None:
            return None
        version = _get_cache_version(principal_id)
        return f"{CACHE_PREFIX}:{principal_id}:{version}"

    def list_assignments(self, principal_id: Any) -> FrozenSet[Assignment]:
        if principal_id is None:
            return frozenset()
        cache_key = self._cache_key(principal_id)
        if cache_key:
            cached = cache.get(cache_key)
            if isinstance(cached, list):
                return frozenset(self._from_cached(principal_id, cached))

        rows = list(
            RoleAssignment.objects.filter(user_id=principal_id).values_list(
                "role", "scope_type", "scope_id", "tenant_id"
            )
        )
        if cache_key:
            cache.set(cache_key, rows, timeout=self._cache_ttl)
        return frozenset(self._from_cached(principal_id, rows))

    def _from_cached(self, principal_id: Any, rows: list) -> list[Assignment]:
        assignments = []
        for role, scope_type, scope_id, tenant_id in rows:
            try:
                role = Role(role)
            except ValueError:
                logger.warning("Ignoring unknown role %r for principal %s", role, principal_id)
                continue
            assignments.append(
                Assignment(
                    principal_id=principal_id,
                    role=role,
                    scope_type=ScopeType(scope_type),
                    scope_id=scope_id,
                    tenant_id=tenant_id,
                )
            )
        return assignments

    def tenant_has_assignments(self, tenant_id: Any) -> bool:
        pk = _as_int(tenant_id)
        if pk is None:
            return False
        return RoleAssignment.objects.filter(tenant_id=pk).exists()

    def _insert(self, assignment: Assignment, granted_by: Any = None) -> bool:
        try:
            with transaction.atomic():
                _, created = RoleAssignment.objects.get_or_create(
                    user_id=assignment.principal_id,
                    role=assignment.role.value,
                    scope_type=assignment.scope_type.value,
                    scope_id=str(assignment.scope_id),
                    defaults={
                        "tenant_id": assignment.tenant_id,
                        "granted_by_id": granted_by,
                    },
                )
        except IntegrityError:
            # A concurrent writer inserted the same tuple.
            created = False
        bump_principal_cache_version(assignment.principal_id)
        return created

    def _delete(self, principal_id: Any, role: Role, scope_type: ScopeType, scope_id: Any) -> bool:
        with transaction.atomic():
            deleted, _ = RoleAssignment.objects.filter(
                user_id=principal_id,
                role=role.value,
                scope_type=scope_type.value,
                scope_id=str(scope_id),
            ).delete()
        bump_principal_cache_version(principal_id)
        return deleted > 0
