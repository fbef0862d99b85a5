"""Custom DRF permissions for the organisation API."""
import logging

from rest_framework.permissions import SAFE_METHODS, BasePermission

from core.access import check_permission

logger = logging.getLogger("logistics")

VIEWSET_ACTION_TO_OPERATION = {
    "list": "read",
    "retrieve": "read",
    "create": "create",
    "update": "update",
    "partial_update": "update",
    "destroy": "delete",
}


def resolve_operation(view) -> str:
    """Map the viewset action onto ``read/create/update/delete``.

    Views override single actions through ``permission_actions``; unknown
    custom actions fall back on the HTTP method.
    """
    action = getattr(view, "action", None)
    overrides = getattr(view, "permission_actions", {}) or {}
    if action in overrides:
        return overrides[action]
    if action in VIEWSET_ACTION_TO_OPERATION:
        return VIEWSET_ACTION_TO_OPERATION[action]
    return "read" if view.request.method in SAFE_METHODS else "update"


class HasResourcePermission(BasePermission):
    """Authenticated user holding ``<permission_resource>:<operation>``.

    Actions listed in the view's ``ownership_actions`` also let the owner of
    the addressed row through; the view supplies ``resolve_owner(pk)``.
    """

    message = "Permission denied"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        resource = view.permission_resource
        operation = resolve_operation(view)
        ownership = getattr(view, "action", None) in getattr(view, "ownership_actions", ())
        resource_id = None
        if ownership:
            lookup = view.lookup_url_kwarg or view.lookup_field
            resource_id = view.kwargs.get(lookup)

        allowed = check_permission(
            user,
            resource,
            operation,
            require_ownership=ownership,
            resource_id=resource_id,
            resolve_owner=getattr(view, "resolve_owner", None),
        )
        if not allowed:
            logger.warning(
                "Permission denied: %s:%s for user %s",
                resource, operation, user.id,
                extra={"user_id": str(user.id), "resource": resource, "action": operation},
            )
        return allowed
