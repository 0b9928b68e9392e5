"""
Request timing and API error middleware.
"""

import logging
import time

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.http import Http404, JsonResponse
from django.utils.deprecation import MiddlewareMixin

from .exceptions import BookMarketError

logger = logging.getLogger(__name__)


class RequestTimingMiddleware(MiddlewareMixin):
    """
    Logs the time taken for each request.

    Output format:
    METHOD /path/ - XXX.XXms - STATUS
    """

    def process_request(self, request):
        """Store the start time when request begins."""
        request._start_time = time.time()

    def process_response(self, request, response):
        """Calculate and log the request duration."""
        if hasattr(request, "_start_time"):
            duration_ms = (time.time() - request._start_time) * 1000
            path = request.path

            # Skip static files and admin requests for cleaner output
            if not path.startswith("/static/") and not path.startswith("/admin/"):
                if duration_ms < 100:
                    duration_str = f"{duration_ms:6.2f}ms"
                else:
                    duration_str = f"{duration_ms:6.1f}ms"
                logger.info(
                    f"{request.method:6s} {path:40s} {duration_str} {response.status_code}"
                )

        return response


class ApiErrorMiddleware(MiddlewareMixin):
    """
    Turns exceptions raised by /api/ views into JSON error responses:

        {"success": false, "kind": "...", "message": "...", "errors": [...]}
    """

    def process_exception(self, request, exception):
        if not request.path.startswith("/api/"):
            return None

        if isinstance(exception, BookMarketError):
            if exception.status_code >= 500:
                logger.error(f"{request.method} {request.path}: {exception.message}")
            return JsonResponse(exception.to_dict(), status=exception.status_code)

        if isinstance(exception, Http404):
            return JsonResponse(
                {"success": False, "kind": "NotFoundError", "message": str(exception) or "Not found"},
                status=404,
            )

        if isinstance(exception, DjangoValidationError):
            errors = [
                {"field": field, "message": message}
                for field, messages in exception.message_dict.items()
                for message in messages
            ] if hasattr(exception, "error_dict") else [
                {"field": None, "message": message} for message in exception.messages
            ]
            return JsonResponse(
                {"success": False, "kind": "ValidationError", "message": "Invalid input", "errors": errors},
                status=400,
            )

        if isinstance(exception, IntegrityError):
            logger.warning(f"Integrity error on {request.method} {request.path}: {str(exception)}")
            return JsonResponse(
                {
                    "success": False,
                    "kind": "ValidationError",
                    "message": "Duplicate field value. Please use another value.",
                },
                status=400,
            )

        logger.error(
            f"Unhandled error on {request.method} {request.path}: {str(exception)}",
            exc_info=True,
        )
        payload = {"success": False, "kind": "Error", "message": "Internal Server Error"}
        if settings.DEBUG:
            payload["message"] = str(exception)
        return JsonResponse(payload, status=500)
