"""
Infrastructure endpoints that sit outside the chat domain.
"""

import logging

from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Report database and cache connectivity for load balancers and orchestrators.

    HTTP Status Codes:
        200: Database reachable (cache problems only degrade the report)
        503: Database unreachable

    Example Response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
    """
    report = {"status": "healthy", "database": "unknown", "cache": "unknown"}
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        report["database"] = "connected"
    except Exception:
        logger.exception("Health check: database unreachable")
        report["database"] = "disconnected"
        report["status"] = "unhealthy"
        status_code = 503

    # Redis backs presence and analytics, but the API can still answer without it
    try:
        cache.set("health_check", "ok", timeout=1)
        report["cache"] = (
            "connected" if cache.get("health_check") == "ok" else "disconnected"
        )
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        report["cache"] = "disconnected"

    return JsonResponse(report, status=status_code)
