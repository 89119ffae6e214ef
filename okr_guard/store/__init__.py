from .base import AssignmentStore, coerce_role, coerce_scope_type
from .memory import InMemoryAssignmentStore

__all__ = [
    "AssignmentStore",
    "InMemoryAssignmentStore",
    "coerce_role",
    "coerce_scope_type",
]
