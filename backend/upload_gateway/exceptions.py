"""
Exceptions and error translation for the upload gateway.

Upload-time failures (size, count, unexpected field, content type) are
raised as ``UploadGatewayError`` subclasses while the multipart body is
parsed. ``translate_upload_error`` maps them to the JSON error bodies the
API returns; everything else is left for the generic error handling layer.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .constants import (
    ERROR_ACCESS_DENIED,
    ERROR_FILE_NOT_FOUND,
    ERROR_FILE_TOO_LARGE,
    ERROR_INVALID_FILE_TYPE,
    ERROR_TOO_MANY_FILES,
    ERROR_UNEXPECTED_FIELD,
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    LOG_UPLOAD_REJECTED,
    MAX_FILE_SIZE_MB,
    MAX_FILES_PER_REQUEST,
)

logger = logging.getLogger(__name__)


class UploadGatewayError(Exception):
    """
    Base exception for upload gateway failures.

    Attributes:
        message: Human-readable error message, safe to return to clients
        status_code: HTTP status code to return
        details: Additional error details (optional, never sent to clients)
    """

    status_code = HTTP_400_BAD_REQUEST
    default_message = 'Upload failed'

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the ``{"error": ...}`` response body."""
        return {'error': self.message}


class SizeLimitExceeded(UploadGatewayError):
    """A single file part exceeded the per-file size ceiling."""
    default_message = ERROR_FILE_TOO_LARGE.format(max_size=MAX_FILE_SIZE_MB)


class CountLimitExceeded(UploadGatewayError):
    """The request carried more file parts than the request limit allows."""
    default_message = ERROR_TOO_MANY_FILES.format(max_files=MAX_FILES_PER_REQUEST)


class UnexpectedField(UploadGatewayError):
    """A file arrived on a field the upload descriptor does not accept."""
    default_message = ERROR_UNEXPECTED_FIELD


class TypeRejected(UploadGatewayError):
    """The declared content type is not in the allow-list."""

    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(
            ERROR_INVALID_FILE_TYPE.format(file_type=content_type),
            details={'content_type': content_type},
        )


class FileNotFound(UploadGatewayError):
    """No regular file is stored under the requested name."""
    status_code = HTTP_404_NOT_FOUND
    default_message = ERROR_FILE_NOT_FOUND


class AccessDenied(UploadGatewayError):
    """The requested name is not a path inside the upload directory."""
    status_code = HTTP_403_FORBIDDEN
    default_message = ERROR_ACCESS_DENIED


def translate_upload_error(exc: Exception) -> Optional[Tuple[int, Dict[str, Any]]]:
    """
    Map an upload-time error to an HTTP status and JSON body.

    The first matching rule wins:
        SizeLimitExceeded  -> 400 "File size too large. Maximum 10MB per file."
        CountLimitExceeded -> 400 "Too many files. Maximum 20 files per request."
        UnexpectedField    -> 400 "Unexpected file field."
        TypeRejected       -> 400 with the original "File type ..." message

    Args:
        exc: The exception raised while handling an upload

    Returns:
        A ``(status_code, body)`` tuple, or None when the error is not an
        upload-time error and must go to the generic error handler.
    """
    if isinstance(exc, SizeLimitExceeded):
        body = {'error': ERROR_FILE_TOO_LARGE.format(max_size=MAX_FILE_SIZE_MB)}
    elif isinstance(exc, CountLimitExceeded):
        body = {'error': ERROR_TOO_MANY_FILES.format(max_files=MAX_FILES_PER_REQUEST)}
    elif isinstance(exc, UnexpectedField):
        body = {'error': ERROR_UNEXPECTED_FIELD}
    elif isinstance(exc, TypeRejected) and 'File type' in exc.message:
        body = {'error': exc.message}
    else:
        return None

    logger.warning(LOG_UPLOAD_REJECTED.format(error=body['error']))
    return HTTP_400_BAD_REQUEST, body


def upload_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """
    DRF exception handler that translates upload errors.

    Configure it as ``REST_FRAMEWORK['EXCEPTION_HANDLER']``. Upload-time
    errors become 400 responses; ``FileNotFound`` and ``AccessDenied`` become
    404 and 403. Anything else is passed to DRF's default handler, which
    returns None for exceptions it does not know so Django handles them.
    """
    translated = translate_upload_error(exc)
    if translated is not None:
        status_code, body = translated
        return Response(body, status=status_code)

    if isinstance(exc, (FileNotFound, AccessDenied)):
        return Response(exc.to_dict(), status=exc.status_code)

    return drf_exception_handler(exc, context)
