"""
Role-based access control for tenant, workspace and team scopes.
"""

from .matrix import ACTION_CAPABILITIES, ROLE_CAPABILITIES, build_matrix, role_allows
from .resolver import PermissionResolver, coerce_action, tenant_ids_for
from .types import (
    Action,
    ActionClass,
    Assignment,
    Capability,
    PermissionExplanation,
    Principal,
    Role,
)

__all__ = [
    "ACTION_CAPABILITIES",
    "ROLE_CAPABILITIES",
    "Action",
    "ActionClass",
    "Assignment",
    "Capability",
    "PermissionExplanation",
    "PermissionResolver",
    "Principal",
    "Role",
    "build_matrix",
    "coerce_action",
    "role_allows",
    "tenant_ids_for",
]
