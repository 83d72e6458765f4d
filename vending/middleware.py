import json
import logging

from django.http import JsonResponse

from vending.exceptions import ServiceUnavailable
from vending.store import LedgerStore

logger = logging.getLogger(__name__)

REDACTED_FIELDS = {"password", "token"}
EXEMPT_PATHS = ("/api/health",)


def redact(text):
    """Mask credential fields in a JSON body; non-JSON text is returned as-is."""
    try:
        data = json.loads(text)
    except ValueError:
        return text
    if isinstance(data, dict):
        data = {
            key: "***" if key in REDACTED_FIELDS else value
            for key, value in data.items()
        }
    return json.dumps(data)


class StoreReadinessMiddleware:
    """
    Answers 503 while the ledger store is unreachable.

    The store handle probes lazily: the first request (and the first one
    after a failure) runs the readiness probe, later requests pass straight
    through. A ServiceUnavailable escaping a view marks the handle unready.
    """

    store_class = LedgerStore

    def __init__(self, get_response):
        self.get_response = get_response
        self.store = self.store_class()

    def __call__(self, request):
        if not request.path.startswith(EXEMPT_PATHS):
            try:
                self.store.ensure_ready()
            except ServiceUnavailable as exc:
                return self._unavailable(exc)
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, ServiceUnavailable):
            self.store.mark_unavailable()
            return self._unavailable(exception)
        return None

    def _unavailable(self, exc):
        logger.error("Store unavailable: %s", exc)
        return JsonResponse(
            {"error": exc.message, "code": exc.code},
            status=exc.status_code,
        )


class RequestResponseLoggingMiddleware:
    """
    Middleware that logs each request method, path, body,
    and the corresponding response content, with credentials masked.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_body = ""
        content_type = request.META.get("CONTENT_TYPE", "")

        if "multipart/form-data" in content_type:
            request_body = "<Multipart form data - body not logged>"
        elif request.method in ["POST", "PUT", "PATCH"] and request.body:
            try:
                request_body = redact(request.body.decode("utf-8"))
            except UnicodeDecodeError:
                request_body = "<Could not decode body>"

        logger.info(
            "API Request: %s %s Body: %s",
            request.method,
            request.get_full_path(),
            request_body,
        )

        response = self.get_response(request)

        response_type = response.get("Content-Type", "")
        if not response_type.startswith(("application/json", "text/")):
            response_content = f"<Content-Type: {response_type}>"
        elif getattr(response, "streaming", False):
            response_content = "<Streaming content>"
        else:
            try:
                response_content = redact(response.content.decode("utf-8"))
            except UnicodeDecodeError:
                response_content = "<Could not decode content>"

        logger.info(
            "API Response: %s %s Status: %s Content: %s",
            request.method,
            request.get_full_path(),
            response.status_code,
            response_content,
        )

        return response
