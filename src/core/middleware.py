"""Core middleware."""
import logging
import time
import uuid

from django.utils.cache import patch_cache_control

logger = logging.getLogger("ravito")


class RequestLogMiddleware:
    """Tag each request with an id and log API calls with their duration."""

    API_PREFIX = "/api/"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        started = time.monotonic()
        response = self.get_response(request)
        response["X-Request-ID"] = request.request_id

        if request.path.startswith(self.API_PREFIX):
            elapsed_ms = int((time.monotonic() - started) * 1000)
            user = getattr(request, "user", None)
            logger.info(
                "%s %s -> %s (%d ms)",
                request.method, request.path, response.status_code, elapsed_ms,
                extra={
                    "request_id": request.request_id,
                    "user_id": str(user.pk) if user is not None and user.is_authenticated else None,
                },
            )
        return response


class NoStoreAPIMiddleware:
    """Force no-store headers on API responses so polling clients never read stale data."""

    API_PREFIX = "/api/"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if request.path.startswith(self.API_PREFIX):
            patch_cache_control(
                response,
                private=True,
                no_cache=True,
                no_store=True,
                must_revalidate=True,
                max_age=0,
            )
            response["Pragma"] = "no-cache"
        return response
