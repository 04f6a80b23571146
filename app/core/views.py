"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the screening domain but are
essential for running the service, such as health checks.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: Database reachable (cache is informational only)
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    # The ledger lives in the database; without it nothing can settle
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Cache only holds exchange rates, so a miss here is degraded, not down.
    # django-redis is configured with IGNORE_EXCEPTIONS, so failures read as None.
    cache.set("health_check", "ok", timeout=1)
    if cache.get("health_check") == "ok":
        health_status["cache"] = "connected"
    else:
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)
