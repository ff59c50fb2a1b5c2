"""
Upload error middleware.

This module provides the middleware that turns upload gateway errors raised
by plain Django views into JSON error responses. DRF views get the same
translation through ``upload_exception_handler``.
"""

import logging

from django.http import JsonResponse

from ..constants import LOG_REQUEST_REFUSED
from ..exceptions import AccessDenied, FileNotFound, translate_upload_error

logger = logging.getLogger(__name__)


class UploadErrorMiddleware:
    """
    Middleware that translates upload errors into ``{"error": ...}`` responses.

    Size, count, unexpected-field and content-type errors become 400
    responses; FileNotFound and AccessDenied become 404 and 403. Any other
    exception is left alone so Django's generic error handling sees it.

    Example:
        # In settings.py MIDDLEWARE:
        MIDDLEWARE = [
            ...
            'upload_gateway.middleware.UploadErrorMiddleware',
        ]
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        """
        Translate an exception raised by a view.

        Returns:
            JsonResponse for gateway errors, or None to let Django handle
            the exception normally
        """
        translated = translate_upload_error(exception)
        if translated is not None:
            status_code, body = translated
            return JsonResponse(body, status=status_code)

        if isinstance(exception, (FileNotFound, AccessDenied)):
            logger.warning(LOG_REQUEST_REFUSED.format(
                status=exception.status_code,
                error=exception.__class__.__name__,
                path=request.path,
            ))
            return JsonResponse(exception.to_dict(), status=exception.status_code)

        return None
