"""
Decorators package for the upload gateway.

This package contains the decorators that mount the gateway in front of
views and API endpoints.
"""

from .upload import (
    accept_uploads,
    accept_uploads_method,
    upload_array,
    upload_fields,
    upload_single,
)

__all__ = [
    'accept_uploads',
    'accept_uploads_method',
    'upload_array',
    'upload_fields',
    'upload_single',
]
