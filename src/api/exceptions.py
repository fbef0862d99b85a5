"""Translate every API error into the ``{status: "error", message}`` envelope."""
import logging
import traceback

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

from core.exceptions import DomainError, DuplicateCode, RelatedNotFound

logger = logging.getLogger("logistics")

MESSAGES = {
    exceptions.NotAuthenticated: "Authentication required",
    exceptions.PermissionDenied: "Permission denied",
}


def flatten_errors(detail, prefix=""):
    """Flatten a DRF error structure into ``[{field, message}]``."""
    items = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            name = key if key != "non_field_errors" else ""
            field = f"{prefix}.{name}" if prefix and name else (prefix or name)
            items.extend(flatten_errors(value, field))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                items.extend(flatten_errors(value, f"{prefix}.{index}" if prefix else str(index)))
            else:
                items.extend(flatten_errors(value, prefix))
    else:
        items.append({"field": prefix, "message": str(detail)})
    return items


def error_response(message, status_code, errors=None, **extra) -> Response:
    body = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    set_rollback()
    return Response(body, status=status_code)


def _domain_response(exc):
    if isinstance(exc, DuplicateCode):
        status_code = exc.status_code
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    errors = [{"field": exc.field, "message": exc.message}] if exc.field else None
    return error_response(exc.message, status_code, errors)


def envelope_exception_handler(exc, context):
    """DRF ``EXCEPTION_HANDLER``."""
    if isinstance(exc, DomainError):
        return _domain_response(exc)

    if isinstance(exc, RelatedNotFound):
        errors = [{"field": exc.field, "message": exc.message}] if exc.field else None
        return error_response(exc.message, status.HTTP_404_NOT_FOUND, errors)

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, "error_dict") else exc.messages
        return error_response("Validation Error", status.HTTP_400_BAD_REQUEST, flatten_errors(detail))

    if isinstance(exc, IntegrityError):
        logger.warning("Integrity error: %s", exc)
        return error_response("Duplicate key error", status.HTTP_409_CONFLICT)

    if isinstance(exc, Http404):
        view = context.get("view")
        message = getattr(view, "not_found_message", None) or "Resource not found"
        return error_response(message, status.HTTP_404_NOT_FOUND)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", type(view).__name__ if view else "API")
        extra = {"stack": traceback.format_exc()} if settings.DEBUG else {}
        return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR, **extra)

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            "status": "error",
            "message": "Validation Error",
            "errors": flatten_errors(exc.detail),
        }
        return response

    message = MESSAGES.get(type(exc))
    if message is None:
        detail = getattr(exc, "detail", "")
        message = detail if isinstance(detail, str) else str(exc)
    response.data = {"status": "error", "message": str(message)}
    return response
