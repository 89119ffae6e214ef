"""
Role assignment store interface.
"""

from abc import ABC, abstractmethod
from typing import Any, FrozenSet, Optional

from ..exceptions import InvalidAssignment
from ..rbac.types import Assignment, Role
from ..scopes import ScopeHierarchy, ScopeType


def coerce_role(role: Any) -> Role:
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).upper())
    except ValueError as exc:
        raise InvalidAssignment(f"Unknown role {role!r}") from exc


def coerce_scope_type(scope_type: Any) -> ScopeType:
    if isinstance(scope_type, ScopeType):
        return scope_type
    try:
        return ScopeType(str(scope_type).upper())
    except ValueError as exc:
        raise InvalidAssignment(f"Unknown scope type {scope_type!r}") from exc


class AssignmentStore(ABC):
    """
    Narrow interface over shared assignment state.

    ``assign`` and ``revoke`` are idempotent: assigning an existing tuple and
    revoking a missing one are no-ops. Both return whether anything changed.
    Changes are visible to the next ``list_assignments`` call.
    """

    def __init__(self, hierarchy: ScopeHierarchy):
        self.hierarchy = hierarchy

    @abstractmethod
    def list_assignments(self, principal_id: Any) -> FrozenSet[Assignment]:
        """All assignments held by the principal."""

    @abstractmethod
    def tenant_has_assignments(self, tenant_id: Any) -> bool:
        """True when anyone holds a role inside the tenant."""

    @abstractmethod
    def _insert(self, assignment: Assignment, granted_by: Any = None) -> bool:
        """Persist the assignment, returning False if it already existed."""

    @abstractmethod
    def _delete(self, principal_id: Any, role: Role, scope_type: ScopeType, scope_id: Any) -> bool:
        """Remove the assignment, returning False if it did not exist."""

    def has_assignment(
        self, principal_id: Any, role: Any, scope_type: Any, scope_id: Any
    ) -> bool:
        wanted = (
            str(principal_id),
            coerce_role(role).value,
            coerce_scope_type(scope_type).value,
            str(scope_id),
        )
        return any(a.key == wanted for a in self.list_assignments(principal_id))

    def build_assignment(
        self, principal_id: Any, role: Any, scope_type: Any, scope_id: Any
    ) -> Assignment:
        """Validate a tuple against the scope hierarchy."""
        if principal_id is None:
            raise InvalidAssignment("Assignments need a principal")
        role = coerce_role(role)
        scope_type = coerce_scope_type(scope_type)
        if scope_type == ScopeType.PLATFORM:
            raise InvalidAssignment("Platform roles come from the superuser flag")
        if role.scope_type != scope_type:
            raise InvalidAssignment(
                f"{role.value} can only be granted at {role.scope_type.value} scope"
            )
        chain = self.hierarchy.chain_for(scope_type, scope_id)
        if chain is None:
            raise InvalidAssignment(f"{scope_type.value} {scope_id!r} does not exist")
        return Assignment(
            principal_id=principal_id,
            role=role,
            scope_type=scope_type,
            scope_id=scope_id,
            tenant_id=chain.tenant_id,
        )

    def assign(
        self,
        principal_id: Any,
        role: Any,
        scope_type: Any,
        scope_id: Any,
        *,
        granted_by: Optional[Any] = None,
    ) -> bool:
        assignment = self.build_assignment(principal_id, role, scope_type, scope_id)
        return self._insert(assignment, granted_by=granted_by)

    def revoke(self, principal_id: Any, role: Any, scope_type: Any, scope_id: Any) -> bool:
        return self._delete(
            principal_id, coerce_role(role), coerce_scope_type(scope_type), scope_id
        )
