"""
Domain exceptions and the DRF exception handler.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


class AtriumException(Exception):
    """Base exception for Atrium-specific errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def as_dict(self):
        return {
            'error': self.message,
            'code': self.code,
            'details': self.details,
        }


class ValidationError(AtriumException):
    """
    Raised when input validation fails.

    ``items`` holds one entry per offending field so callers editing a large
    permission matrix see every mistake in a single round trip.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'VALIDATION_ERROR'

    def __init__(self, message, details=None, items=None):
        super().__init__(message, details)
        self.items = list(items or [])

    def as_dict(self):
        data = super().as_dict()
        data['items'] = self.items
        return data


class NotFound(AtriumException):
    """Raised when a referenced entity does not exist (or belongs to another tenant)."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class Conflict(AtriumException):
    """Raised when the current state forbids the operation."""
    status_code = status.HTTP_409_CONFLICT
    code = 'CONFLICT'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, AtriumException):
        logger.warning(
            f"API Exception: {exc.__class__.__name__}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
                'status_code': exc.status_code,
            }
        )
        data = exc.as_dict()
        data['request_id'] = request_id
        return Response(data, status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception_message': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': 'Internal server error',
                'code': 'INTERNAL_ERROR',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.info(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'request_id': request_id,
            'path': request.path if request else None,
            'status_code': response.status_code,
        }
    )

    # Add request_id to all error responses
    if isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
