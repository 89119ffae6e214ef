"""
Endpoint guards.

Mutation and read endpoints declare the action they need ahead of
invocation. The guard asks the access engine before the wrapped function
runs and turns a denial into a GraphQL error or an HTTP response.
"""

from functools import wraps
from typing import Any, Callable, Optional

from django.http import JsonResponse
from graphql import GraphQLError

from .decisions import Decision, DenialKind
from .rbac.resolver import coerce_action


_STATUS_CODES = {
    DenialKind.UNAUTHENTICATED: 401,
    DenialKind.FORBIDDEN: 403,
    DenialKind.RATE_LIMITED: 429,
    DenialKind.NOT_FOUND: 404,
}


def _engine(engine):
    if engine is not None:
        return engine
    from .engine import get_access_engine

    return get_access_engine()


def denial_to_graphql_error(decision: Decision) -> GraphQLError:
    kind = decision.kind or DenialKind.FORBIDDEN
    extensions: dict[str, Any] = {"code": kind.value.upper(), "reason": decision.reason.value}
    if decision.retry_after:
        extensions["retryAfter"] = decision.retry_after
    return GraphQLError(decision.message or "Access denied", extensions=extensions)


def denial_response(decision: Decision) -> JsonResponse:
    kind = decision.kind or DenialKind.FORBIDDEN
    response = JsonResponse(
        {
            "error": kind.value,
            "reason": decision.reason.value,
            "message": decision.message,
        },
        status=_STATUS_CODES[kind],
    )
    if kind == DenialKind.RATE_LIMITED and decision.retry_after:
        response["Retry-After"] = str(decision.retry_after)
    return response


def require_action(
    action: Any,
    *,
    resource: Optional[Callable[..., Any]] = None,
    cycle: Optional[Callable[..., Any]] = None,
    engine: Any = None,
):
    """
    Guard a GraphQL resolver.

    ``resource`` and ``cycle`` are called with the resolver's arguments
    (root, info, **kwargs) and return the target record and its cycle.

    Example:
        @require_action("edit_okr", resource=lambda root, info, id, **kw: Objective.objects.get(pk=id))
        def resolve_update_objective(root, info, id, **kwargs):
            ...
    """
    required = coerce_action(action)

    def decorator(func):
        @wraps(func)
        def wrapper(root, info, *args, **kwargs):
            request = getattr(info, "context", None)
            user = getattr(request, "user", None)
            target = resource(root, info, *args, **kwargs) if resource else None
            cycle_ref = cycle(root, info, *args, **kwargs) if cycle else None
            decision = _engine(engine).authorize(
                user,
                required,
                resource=target,
                cycle=cycle_ref,
                tenant_id=getattr(request, "okr_tenant_id", None),
                request=request,
            )
            if not decision.allowed:
                raise denial_to_graphql_error(decision)
            return func(root, info, *args, **kwargs)

        wrapper.required_action = required
        return wrapper

    return decorator


def require_action_view(
    action: Any,
    *,
    resource: Optional[Callable[..., Any]] = None,
    cycle: Optional[Callable[..., Any]] = None,
    engine: Any = None,
):
    """
    Guard a Django view. ``resource`` and ``cycle`` receive
    (request, *args, **kwargs).
    """
    required = coerce_action(action)

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            target = resource(request, *args, **kwargs) if resource else None
            cycle_ref = cycle(request, *args, **kwargs) if cycle else None
            decision = _engine(engine).authorize(
                getattr(request, "user", None),
                required,
                resource=target,
                cycle=cycle_ref,
                tenant_id=getattr(request, "okr_tenant_id", None),
                request=request,
            )
            if not decision.allowed:
                return denial_response(decision)
            return view_func(request, *args, **kwargs)

        wrapper.required_action = required
        return wrapper

    return decorator
