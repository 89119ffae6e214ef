"""
In-memory assignment store, used by tests and single-process deployments.
"""

import threading
from typing import Any, FrozenSet

from ..rbac.types import Assignment, Role
from ..scopes import ScopeRegistry, ScopeType, same_id
from .base import AssignmentStore


class InMemoryAssignmentStore(AssignmentStore):
    def __init__(self, hierarchy: ScopeRegistry = None):
        super().__init__(hierarchy or ScopeRegistry())
        self._lock = threading.Lock()
        self._by_principal: dict[str, dict[tuple, Assignment]] = {}

    def list_assignments(self, principal_id: Any) -> FrozenSet[Assignment]:
        with self._lock:
            return frozenset(self._by_principal.get(str(principal_id), {}).values())

    def tenant_has_assignments(self, tenant_id: Any) -> bool:
        with self._lock:
            return any(
                same_id(a.tenant_id, tenant_id)
                for held in self._by_principal.values()
                for a in held.values()
            )

    def _insert(self, assignment: Assignment, granted_by: Any = None) -> bool:
        with self._lock:
            held = self._by_principal.setdefault(str(assignment.principal_id), {})
            if assignment.key in held:
                return False
            held[assignment.key] = assignment
            return True

    def _delete(self, principal_id: Any, role: Role, scope_type: ScopeType, scope_id: Any) -> bool:
        key = (str(principal_id), role.value, scope_type.value, str(scope_id))
        with self._lock:
            held = self._by_principal.get(str(principal_id), {})
            return held.pop(key, None) is not None
