"""
Tenant resolution.

The tenant of a request comes from authenticated state only: the session, a
signed token claim, or the principal's single tenant membership. Headers and
query parameters are never consulted, and a tenant the principal holds no
role in is discarded.
"""

import logging
from typing import Any, Iterable, Optional

import jwt
from django.conf import settings

from ..rbac.resolver import tenant_ids_for
from ..rbac.types import Assignment, Principal
from ..scopes import same_id
from .settings import get_tenancy_settings

logger = logging.getLogger(__name__)

_TENANT_ID_ATTR = "_okr_guard_tenant_id"
_TENANT_RESOLVED_ATTR = "_okr_guard_tenant_resolved"


def get_jwt_secret() -> str:
    return getattr(settings, "JWT_SECRET_KEY", settings.SECRET_KEY)


def decode_bearer_token(request: Any) -> Optional[dict]:
    """Verified payload of the request's bearer token, if any."""
    payload = getattr(request, "jwt_payload", None)
    if isinstance(payload, dict):
        return payload

    meta = getattr(request, "META", None)
    if not isinstance(meta, dict):
        return None
    header = str(meta.get("HTTP_AUTHORIZATION", "") or "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        return jwt.decode(token.strip(), get_jwt_secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.info("Expired bearer token ignored for tenant resolution")
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid bearer token ignored for tenant resolution: %s", exc)
    return None


def _session_tenant(request: Any, session_key: str) -> Any:
    session = getattr(request, "session", None)
    if session is None:
        return None
    try:
        return session.get(session_key)
    except AttributeError:
        return None


def single_membership_tenant(assignments: Iterable[Assignment]) -> Any:
    """The principal's tenant when they belong to exactly one."""
    tenants = {str(t): t for t in tenant_ids_for(assignments)}
    if len(tenants) == 1:
        return next(iter(tenants.values()))
    return None


def pick_tenant(
    principal: Principal,
    assignments: Iterable[Assignment],
    candidates: Iterable[Any] = (),
) -> Any:
    """
    First candidate the principal belongs to, else their single membership.

    Superusers keep any candidate since they hold no tenant roles.
    """
    assignments = list(assignments)
    member_of = tenant_ids_for(assignments)
    for candidate in candidates:
        if candidate in (None, ""):
            continue
        if principal.is_superuser or any(same_id(candidate, t) for t in member_of):
            return candidate
        logger.warning(
            "Discarding tenant %s for principal %s: no membership", candidate, principal.id
        )
    return single_membership_tenant(assignments)


def resolve_tenant_id(request: Any, store: Any = None) -> Any:
    """Resolve and cache the tenant of a Django request."""
    if request is None:
        return None
    if getattr(request, _TENANT_RESOLVED_ATTR, False):
        return getattr(request, _TENANT_ID_ATTR, None)

    principal = Principal.from_user(getattr(request, "user", None))
    tenant_id = None
    if principal.is_authenticated:
        if store is None:
            from ..engine import get_access_engine

            store = get_access_engine().store
        tenancy = get_tenancy_settings()
        candidates = [_session_tenant(request, tenancy.session_key)]
        payload = decode_bearer_token(request)
        if payload:
            candidates.append(payload.get(tenancy.tenant_claim))
        tenant_id = pick_tenant(principal, store.list_assignments(principal.id), candidates)

    setattr(request, _TENANT_ID_ATTR, tenant_id)
    setattr(request, _TENANT_RESOLVED_ATTR, True)
    return tenant_id
