"""
Tenant context middleware.
"""

from typing import Any, Optional

from .resolver import resolve_tenant_id


class TenantContextMiddleware:
    """
    Django middleware exposing the resolved tenant as ``request.okr_tenant_id``.

    Place it after AuthenticationMiddleware.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.okr_tenant_id = resolve_tenant_id(request)
        return self.get_response(request)


class TenantContextGraphQLMiddleware:
    """Graphene middleware doing the same for GraphQL contexts."""

    def __init__(self, store: Optional[Any] = None):
        self.store = store

    def resolve(self, next_resolver, root, info, **kwargs):
        context = getattr(info, "context", None)
        if context is not None and not hasattr(context, "okr_tenant_id"):
            context.okr_tenant_id = resolve_tenant_id(context, store=self.store)
        return next_resolver(root, info, **kwargs)
