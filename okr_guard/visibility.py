"""
Record-level visibility.

Visibility is independent of action permission: a principal allowed to view
OKRs in a tenant still only sees PRIVATE records they own, are whitelisted on,
or administer at tenant level. Hidden records behave as if they did not exist,
so listings filter before counting and before pagination.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from .rbac.types import Assignment, Principal, Role
from .resources import Resource, VisibilityLevel, as_resource, coerce_visibility
from .scopes import ScopeType, same_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRIVATE_ADMIN_ROLES = frozenset({Role.TENANT_OWNER, Role.TENANT_ADMIN})

ParentLookup = Callable[[Any], Optional[Resource]]


@dataclass
class ListingResult(Generic[T]):
    """A page of visible records; ``total_count`` counts every visible record."""

    items: list[T] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: Optional[int] = None
    permitted: bool = True
    decision: Any = None

    @property
    def page_count(self) -> int:
        if not self.page_size:
            return 1 if self.total_count else 0
        return (self.total_count + self.page_size - 1) // self.page_size


class VisibilityResolver:
    def __init__(self, parent_lookup: Optional[ParentLookup] = None):
        self.parent_lookup = parent_lookup

    def source_of(self, resource: Resource) -> Optional[Resource]:
        """
        The record whose visibility applies: the resource itself for an
        objective, its parent objective for key results and initiatives.
        """
        if not resource.is_child:
            return resource
        if resource.parent is not None:
            return resource.parent
        if self.parent_lookup is not None and resource.parent_id is not None:
            return self.parent_lookup(resource.parent_id)
        return None

    def is_visible(
        self,
        principal: Principal,
        resource: Resource,
        assignments: Iterable[Assignment],
    ) -> bool:
        if principal.is_superuser:
            return True
        source = self.source_of(resource)
        if source is None:
            logger.debug("No parent objective for %s %s", resource.kind.value, resource.id)
            return False
        if not same_id(resource.tenant_id, source.tenant_id):
            return False

        tenant_assignments = [
            a for a in assignments if same_id(a.tenant_id, source.tenant_id)
        ]
        if not tenant_assignments:
            return False

        if coerce_visibility(source.visibility) == VisibilityLevel.PUBLIC_TENANT:
            return True

        if same_id(source.owner_id, principal.id):
            return True
        if any(same_id(member, principal.id) for member in source.whitelist):
            return True
        return any(
            a.role in PRIVATE_ADMIN_ROLES and a.scope_type == ScopeType.TENANT
            for a in tenant_assignments
        )

    def filter_visible(
        self,
        principal: Principal,
        records: Iterable[T],
        assignments: Iterable[Assignment],
        *,
        tenant_id: Any = None,
    ) -> list[T]:
        """
        Keep the records the principal may see, in their original order.

        With ``tenant_id`` set, records of any other tenant are dropped too.
        """
        assignments = list(assignments)
        visible = []
        for record in records:
            resource = as_resource(record)
            if tenant_id is not None and not same_id(resource.tenant_id, tenant_id):
                continue
            if self.is_visible(principal, resource, assignments):
                visible.append(record)
        return visible

    def paginate(
        self,
        principal: Principal,
        records: Iterable[T],
        assignments: Iterable[Assignment],
        *,
        page: int = 1,
        page_size: Optional[int] = None,
        tenant_id: Any = None,
    ) -> ListingResult[T]:
        """
        Filter, count, then slice. A missing or non-positive ``page_size``
        returns every visible record on one page.
        """
        visible = self.filter_visible(principal, records, assignments, tenant_id=tenant_id)
        page = max(int(page or 1), 1)
        page_size = int(page_size) if page_size else None
        if page_size is not None and page_size < 1:
            page_size = None
        items = visible
        if page_size:
            start = (page - 1) * page_size
            items = visible[start : start + page_size]
        return ListingResult(
            items=items,
            total_count=len(visible),
            page=page,
            page_size=page_size,
        )
