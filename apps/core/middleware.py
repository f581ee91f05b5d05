"""
Core middleware for request processing.
"""
import time
import uuid
import logging
import threading
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_local = threading.local()


def get_request_id():
    """Return the request id of the request being served on this thread, if any."""
    return getattr(_local, 'request_id', None)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object, to log records and to
    the ``X-Request-ID`` response header.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        request_id = request.META.get('HTTP_X_REQUEST_ID') or uuid.uuid4().hex
        request.request_id = request_id
        request.start_time = time.time()
        _local.request_id = request_id

    def process_response(self, request, response):
        """Add request_id to response headers and log completion."""
        request_id = getattr(request, 'request_id', None)
        if request_id:
            response['X-Request-ID'] = request_id

            duration = time.time() - getattr(request, 'start_time', time.time())
            status_code = response.status_code
            if status_code >= 500:
                log_method = logger.error
            elif status_code >= 400:
                log_method = logger.warning
            else:
                log_method = logger.info
            log_method(
                f"Request completed: {request.method} {request.path} - {status_code} in {duration:.3f}s",
                extra={
                    'request_id': request_id,
                    'method': request.method,
                    'path': request.path,
                    'status_code': status_code,
                    'duration_ms': round(duration * 1000, 2),
                }
            )

        _local.request_id = None
        return response


class LoggingFilter(logging.Filter):
    """
    Add request_id to log records from thread-local storage.
    """

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = get_request_id()
        return True


def get_actor_id(request):
    """
    Id of the acting user as forwarded by the gateway in ``X-Actor-ID``.

    Authentication happens upstream; a missing or malformed header means a
    system action and yields None.
    """
    value = request.META.get('HTTP_X_ACTOR_ID')
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        logger.warning(
            "Ignoring malformed X-Actor-ID header",
            extra={'request_id': getattr(request, 'request_id', None)}
        )
        return None
