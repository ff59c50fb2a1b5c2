"""
Utilities package for the upload gateway.

This package contains the storage helpers: directory setup, storage name
generation, path containment, and file deletion and lookup.
"""

from .storage import (
    StoredFileInfo,
    configure_storage,
    delete_uploaded_file,
    generate_storage_name,
    get_file_info,
    get_stored_file_path,
    resolve_stored_path,
)

__all__ = [
    'StoredFileInfo',
    'configure_storage',
    'delete_uploaded_file',
    'generate_storage_name',
    'get_file_info',
    'get_stored_file_path',
    'resolve_stored_path',
]
