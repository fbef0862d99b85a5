"""Permission decisions and their cache.

:func:`decide` is a pure function of the user's claims. :func:`check_permission`
memoizes its outcome in the Django cache and fails closed.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger("logistics")

ADMIN_ROLES = {"admin", "ADMIN"}
MANAGE_ACTION = "manage"
WILDCARD = "*"


def is_admin(user) -> bool:
    return any(role in ADMIN_ROLES for role in getattr(user, "roles", None) or [])


def has_direct_permission(user, resource: str, action: str) -> bool:
    for permission in getattr(user, "permissions", None) or []:
        granted_resource = permission.get("resource")
        granted_action = permission.get("action")
        if granted_resource == resource and granted_action in (action, MANAGE_ACTION):
            return True
        if granted_resource == WILDCARD and granted_action == WILDCARD:
            return True
    return False


def decide(user, resource: str, action: str, *, owner_id: Optional[str] = None) -> bool:
    if is_admin(user):
        return True
    if has_direct_permission(user, resource, action):
        return True
    if owner_id is not None and str(owner_id) == str(user.id):
        return True
    return False


def permission_cache_key(user, resource: str, action: str, resource_id=None) -> str:
    key = f"permission:{user.id}:{resource}:{action}"
    if resource_id is not None:
        key = f"{key}:{resource_id}"
    return key


def check_permission(
    user,
    resource: str,
    action: str,
    *,
    require_ownership: bool = False,
    resource_id=None,
    resolve_owner: Callable[[object], Optional[str]] | None = None,
) -> bool:
    """Cached :func:`decide`; any lookup error results in a denial.

    Ownership-based checks are cached per resource id.
    """
    if is_admin(user):
        return True

    ownership = require_ownership and resource_id is not None and resolve_owner is not None
    key = permission_cache_key(user, resource, action, resource_id if ownership else None)
    try:
        cached = cache.get(key)
        if cached is not None:
            return cached

        owner_id = None
        if ownership and not has_direct_permission(user, resource, action):
            owner_id = resolve_owner(resource_id)

        allowed = decide(user, resource, action, owner_id=owner_id)
        cache.set(key, allowed, settings.PERMISSION_CACHE_TTL)
        return allowed
    except Exception:
        logger.exception("Permission check failed for %s:%s (user %s)", resource, action, user.id)
        return False


def clear_permission_cache(user, resource: str, action: str, resource_id=None) -> None:
    cache.delete(permission_cache_key(user, resource, action, resource_id))
