"""
Plain value types for the records the engine decides on.

Django models convert themselves into these (``as_resource`` / ``as_cycle``)
so the resolvers never query the ORM.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .scopes import ScopeChain

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    OBJECTIVE = "objective"
    KEY_RESULT = "key_result"
    INITIATIVE = "initiative"


class VisibilityLevel(str, Enum):
    PUBLIC_TENANT = "PUBLIC_TENANT"
    PRIVATE = "PRIVATE"


# Levels accepted from older data; all of them behave as PUBLIC_TENANT.
LEGACY_VISIBILITY_LEVELS = frozenset(
    {"WORKSPACE_ONLY", "TEAM_ONLY", "MANAGER_CHAIN", "EXEC_ONLY"}
)


class PublishState(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class CycleStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    ARCHIVED = "ARCHIVED"


def coerce_visibility(value: Any) -> VisibilityLevel:
    """Map a stored visibility value onto the two supported levels."""
    if isinstance(value, VisibilityLevel):
        return value
    raw = str(value or "").strip().upper()
    if raw == VisibilityLevel.PRIVATE.value:
        return VisibilityLevel.PRIVATE
    if raw and raw != VisibilityLevel.PUBLIC_TENANT.value:
        if raw in LEGACY_VISIBILITY_LEVELS:
            logger.debug("Treating legacy visibility %s as PUBLIC_TENANT", raw)
        else:
            logger.warning("Unknown visibility level %r, treating as PUBLIC_TENANT", value)
    return VisibilityLevel.PUBLIC_TENANT


@dataclass(frozen=True)
class Cycle:
    id: Any
    tenant_id: Any
    status: CycleStatus = CycleStatus.ACTIVE

    def is_locked(self, locked_statuses) -> bool:
        return self.status.value in {str(s).upper() for s in locked_statuses}


@dataclass(frozen=True)
class Resource:
    """
    An objective, key result or initiative.

    Key results and initiatives carry no visibility of their own. They point
    at their parent objective, either embedded as ``parent`` or by
    ``parent_id`` for a lookup.
    """

    id: Any
    tenant_id: Any
    kind: ResourceKind = ResourceKind.OBJECTIVE
    owner_id: Any = None
    workspace_id: Any = None
    team_id: Any = None
    status: Optional[str] = None
    publish_state: PublishState = PublishState.DRAFT
    visibility: Optional[VisibilityLevel] = VisibilityLevel.PUBLIC_TENANT
    whitelist: frozenset = field(default_factory=frozenset)
    parent_id: Any = None
    parent: Optional["Resource"] = None
    cycle: Optional[Cycle] = None

    @property
    def scope_chain(self) -> ScopeChain:
        return ScopeChain(
            tenant_id=self.tenant_id,
            workspace_id=self.workspace_id,
            team_id=self.team_id,
        )

    @property
    def is_child(self) -> bool:
        return self.kind != ResourceKind.OBJECTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "tenant_id": self.tenant_id,
            "workspace_id": self.workspace_id,
            "team_id": self.team_id,
            "owner_id": self.owner_id,
        }


def as_resource(value: Any) -> Resource:
    """Accept a Resource or anything exposing ``as_resource()``."""
    if isinstance(value, Resource):
        return value
    converter = getattr(value, "as_resource", None)
    if converter is None:
        raise TypeError(f"Cannot build a Resource from {type(value).__name__}")
    return converter()


def as_cycle(value: Any) -> Optional[Cycle]:
    """Accept None, a Cycle or anything exposing ``as_cycle()``."""
    if value is None or isinstance(value, Cycle):
        return value
    converter = getattr(value, "as_cycle", None)
    if converter is None:
        raise TypeError(f"Cannot build a Cycle from {type(value).__name__}")
    return converter()
