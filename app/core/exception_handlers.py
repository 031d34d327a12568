"""
DRF exception handler for the API.

Wired through REST_FRAMEWORK["EXCEPTION_HANDLER"]. Three kinds of errors
reach it:

    1. DRF's own APIException subclasses (authentication, validation,
       throttling). DRF's default handler already renders these.
    2. core.exceptions.BaseApplicationError subclasses raised from services.
       Rendered with their to_dict() body and their http_status.
    3. Anything else. Logged with its traceback and answered with a generic
       500 body so internals never leak to clients.

Error body for unexpected failures:
    {"error": "Internal server error"}
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = {"error": "Internal server error"}


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, BaseApplicationError):
        if exc.http_status >= 500:
            logger.error(f"{view_name}: {exc}")
            return Response(INTERNAL_ERROR_BODY, status=exc.http_status)
        logger.info(f"{view_name}: {exc}")
        return Response(exc.to_dict(), status=exc.http_status)

    logger.exception(f"Unhandled error in {view_name}")
    return Response(INTERNAL_ERROR_BODY, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
