"""Liveness / readiness endpoint."""
import logging
import time

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger("logistics")

PROCESS_STARTED_AT = time.monotonic()
HEALTH_CACHE_KEY = "health:ping"


def database_is_up() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        return False
    return True


def cache_is_up() -> bool:
    try:
        cache.set(HEALTH_CACHE_KEY, "pong", 5)
        return cache.get(HEALTH_CACHE_KEY) == "pong"
    except Exception:
        logger.exception("Health check: cache unreachable")
        return False


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    database = database_is_up()
    cache_ok = cache_is_up()
    healthy = database and cache_ok
    return Response(
        {
            "service": "logistics-erp",
            "uptime": round(time.monotonic() - PROCESS_STARTED_AT, 3),
            "database": database,
            "cache": cache_ok,
            "timestamp": timezone.now().isoformat(),
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
