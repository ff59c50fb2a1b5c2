"""
Constants and configuration values for the upload gateway.

This module contains the acceptance policy (size, count and content-type
limits), the client-facing error messages and the log templates used
throughout the app. The limits are fixed; only the upload directory is read
from Django settings (see ``conf.py``).
"""

# File Upload Constraints
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB in bytes
MAX_FILE_SIZE_MB = 10  # For human-readable error messages
MAX_FILES_PER_REQUEST = 20
DEFAULT_ARRAY_MAX_COUNT = 5  # Default max_count for upload_array()

# Streaming
UPLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB per chunk handed to the upload handler

# Storage name generation
RANDOM_SUFFIX_UPPER_BOUND = 1_000_000_000  # Random suffix is drawn from [0, 1e9)
UNNAMED_FILE = 'unnamed_file'
MAX_FILENAME_BYTES = 200  # UTF-8 bytes kept from the client name

# Storage paths
UPLOAD_SUBDIRECTORY = 'uploads'
SETTINGS_KEY = 'UPLOAD_GATEWAY'

# Allowed MIME types (verification documents)
# Matched case-sensitively against the declared Content-Type of each part
ALLOWED_MIME_TYPES = (
    # Documents
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',

    # Images
    'image/jpeg',
    'image/png',
    'image/jpg',
)

# Error messages
ERROR_NO_FILE = 'No file provided'
ERROR_FILE_TOO_LARGE = 'File size too large. Maximum {max_size}MB per file.'
ERROR_TOO_MANY_FILES = 'Too many files. Maximum {max_files} files per request.'
ERROR_UNEXPECTED_FIELD = 'Unexpected file field.'
ERROR_INVALID_FILE_TYPE = 'File type {file_type} is not allowed'
ERROR_FILE_NOT_FOUND = 'File not found'
ERROR_ACCESS_DENIED = 'Access denied'

# HTTP Status codes (for reference and consistency)
HTTP_200_OK = 200
HTTP_201_CREATED = 201
HTTP_204_NO_CONTENT = 204
HTTP_400_BAD_REQUEST = 400
HTTP_403_FORBIDDEN = 403
HTTP_404_NOT_FOUND = 404

# Logging
LOG_STORAGE_READY = 'Upload directory ready: {path}'
LOG_FILE_STORED = 'File stored: {filename} ({size} bytes) from {original} on field {field}'
LOG_FILE_SERVED = 'File served: {filename}'
LOG_FILE_DELETED = 'File deleted: {filename}'
LOG_UPLOAD_REJECTED = 'Upload rejected: {error}'
LOG_ACCESS_DENIED = 'Access denied for path outside upload directory: {filename}'
LOG_ROLLBACK = 'Removed {count} file(s) written by a rejected request'
LOG_ERROR_DELETE = 'Error deleting file: {error}'
LOG_ERROR_INFO = 'Error getting file info: {error}'
LOG_ERROR_ROLLBACK = 'Error removing partial upload {path}: {error}'
LOG_REQUEST_REFUSED = '{status} {error} on {path}'
