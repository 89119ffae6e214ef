"""
Scope model: TENANT contains WORKSPACE contains TEAM.

A ScopeChain describes where a resource lives. Roles are never propagated in
storage; the permission resolver walks the chain at decision time.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ScopeType(str, Enum):
    PLATFORM = "PLATFORM"
    TENANT = "TENANT"
    WORKSPACE = "WORKSPACE"
    TEAM = "TEAM"


def same_id(left: Any, right: Any) -> bool:
    """Compare identifiers coming from different sources (ints, strings, UUIDs)."""
    if left is None or right is None:
        return False
    return str(left) == str(right)


@dataclass(frozen=True)
class ScopeChain:
    """The tenant, workspace and team a resource belongs to."""

    tenant_id: Any = None
    workspace_id: Any = None
    team_id: Any = None

    @classmethod
    def platform(cls) -> "ScopeChain":
        return cls()

    @property
    def is_platform(self) -> bool:
        return self.tenant_id is None

    @property
    def narrowest(self) -> ScopeType:
        if self.team_id is not None:
            return ScopeType.TEAM
        if self.workspace_id is not None:
            return ScopeType.WORKSPACE
        if self.tenant_id is not None:
            return ScopeType.TENANT
        return ScopeType.PLATFORM

    def contains(self, scope_type: ScopeType, scope_id: Any) -> bool:
        """True when the given scope is this chain's tenant, workspace or team."""
        if scope_type == ScopeType.TENANT:
            return same_id(self.tenant_id, scope_id)
        if scope_type == ScopeType.WORKSPACE:
            return same_id(self.workspace_id, scope_id)
        if scope_type == ScopeType.TEAM:
            return same_id(self.team_id, scope_id)
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "workspace_id": self.workspace_id,
            "team_id": self.team_id,
        }


class ScopeHierarchy(ABC):
    """Read access to the tenant / workspace / team tree."""

    @abstractmethod
    def chain_for(self, scope_type: ScopeType, scope_id: Any) -> Optional[ScopeChain]:
        """Return the chain ending at the given scope, or None if it does not exist."""

    def tenant_for(self, scope_type: ScopeType, scope_id: Any) -> Any:
        chain = self.chain_for(scope_type, scope_id)
        return chain.tenant_id if chain else None

    def exists(self, scope_type: ScopeType, scope_id: Any) -> bool:
        return self.chain_for(scope_type, scope_id) is not None


class ScopeRegistry(ScopeHierarchy):
    """In-memory scope hierarchy."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tenants: set[str] = set()
        self._workspaces: dict[str, Any] = {}
        self._teams: dict[str, tuple[Any, Any]] = {}

    def add_tenant(self, tenant_id: Any) -> "ScopeRegistry":
        with self._lock:
            self._tenants.add(str(tenant_id))
        return self

    def add_workspace(self, workspace_id: Any, tenant_id: Any) -> "ScopeRegistry":
        with self._lock:
            if str(tenant_id) not in self._tenants:
                raise ValueError(f"Unknown tenant {tenant_id!r}")
            self._workspaces[str(workspace_id)] = tenant_id
        return self

    def add_team(self, team_id: Any, workspace_id: Any) -> "ScopeRegistry":
        with self._lock:
            tenant_id = self._workspaces.get(str(workspace_id))
            if tenant_id is None:
                raise ValueError(f"Unknown workspace {workspace_id!r}")
            self._teams[str(team_id)] = (workspace_id, tenant_id)
        return self

    def chain_for(self, scope_type: ScopeType, scope_id: Any) -> Optional[ScopeChain]:
        key = str(scope_id)
        if scope_type == ScopeType.TENANT and key in self._tenants:
            return ScopeChain(tenant_id=scope_id)
        if scope_type == ScopeType.WORKSPACE and key in self._workspaces:
            return ScopeChain(tenant_id=self._workspaces[key], workspace_id=scope_id)
        if scope_type == ScopeType.TEAM and key in self._teams:
            workspace_id, tenant_id = self._teams[key]
            return ScopeChain(
                tenant_id=tenant_id, workspace_id=workspace_id, team_id=scope_id
            )
        return None
