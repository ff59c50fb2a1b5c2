"""
Middleware package for the upload gateway.

This package contains the middleware that translates upload errors raised
by function views into JSON error responses.
"""

from .errors import UploadErrorMiddleware

__all__ = ['UploadErrorMiddleware']
