"""
Validators for file upload operations.

This module provides the acceptance checks applied to every incoming file
part (declared content type and size) and the filename helpers used when a
storage name is generated. The content-type filter returns a result value;
``validate_file_size`` raises SizeLimitExceeded.
"""

import os
import unicodedata
from typing import Iterable, NamedTuple, Optional, Tuple

from .constants import (
    ALLOWED_MIME_TYPES,
    MAX_FILE_SIZE,
    MAX_FILENAME_BYTES,
    UNNAMED_FILE,
)
from .exceptions import SizeLimitExceeded, TypeRejected


class FilterResult(NamedTuple):
    """Outcome of the content-type filter: accepted, or rejected with an error."""
    accepted: bool
    error: Optional[TypeRejected] = None


def check_content_type(content_type: str, allowed: Iterable[str] = ALLOWED_MIME_TYPES) -> FilterResult:
    """
    Test a declared content type against the allow-list.

    The match is exact and case-sensitive; the file content is never
    inspected, so the declared type is trusted as sent by the client.

    Args:
        content_type: The Content-Type declared for the file part
        allowed: The allow-list to test against

    Returns:
        FilterResult: ``accepted=True`` for listed types, otherwise
        ``accepted=False`` with a TypeRejected carrying the rejected type.

    Example:
        >>> check_content_type("application/pdf").accepted
        True
        >>> check_content_type("text/html").error.message
        'File type text/html is not allowed'
    """
    if content_type in allowed:
        return FilterResult(accepted=True)
    return FilterResult(accepted=False, error=TypeRejected(content_type))


def validate_file_size(size: int, max_size: int = MAX_FILE_SIZE) -> None:
    """
    Validate that a file of ``size`` bytes fits the per-file ceiling.

    A file of exactly ``max_size`` bytes is accepted.

    Raises:
        SizeLimitExceeded: If size is greater than max_size
    """
    if size > max_size:
        raise SizeLimitExceeded(details={'size': size, 'max_size': max_size})


def sanitize_filename(filename: str) -> str:
    """
    Strip directory components and unsafe characters from a client filename.

    Unlike a full slug, this keeps the name recognisable (unicode letters,
    spaces and punctuation survive) so it can prefix the stored name.
    Removed or replaced:
    - Directory components (``../``, ``..\\``, absolute paths)
    - Null bytes and other control characters
    - Characters reserved on common filesystems

    Args:
        filename: The original filename supplied with the upload

    Returns:
        str: A filename safe to join onto the upload directory

    Example:
        >>> sanitize_filename("../../../etc/passwd")
        'passwd'
        >>> sanitize_filename("report 2024.pdf")
        'report 2024.pdf'
        >>> sanitize_filename("C:\\\\Users\\\\me\\\\scan.png")
        'scan.png'
    """
    # NFC keeps composed characters composed; it doesn't drop them
    filename = unicodedata.normalize('NFC', filename or '')

    # Strip directories for both separator styles
    filename = filename.replace('\\', '/')
    filename = os.path.basename(filename)

    dangerous_chars = [
        '\x00',           # Null byte
        ':',              # NTFS alternate data streams, drive letters
        '*', '?',         # Wildcards
        '"', '<', '>', '|',
    ]
    for char in dangerous_chars:
        filename = filename.replace(char, '_')

    # Remove any remaining control characters (ASCII 0-31, 127)
    filename = ''.join(char if ord(char) >= 32 and ord(char) != 127 else '_'
                       for char in filename)

    filename = filename.strip()

    if not filename or filename in ('.', '..'):
        filename = UNNAMED_FILE

    # Leave room for the timestamp and random suffix within the 255 byte limit
    if len(filename.encode('utf-8')) > MAX_FILENAME_BYTES:
        name, ext = os.path.splitext(filename)
        max_name_bytes = MAX_FILENAME_BYTES - len(ext.encode('utf-8'))
        if max_name_bytes > 0:
            filename = _truncate_utf8(name, max_name_bytes) + ext
        else:
            filename = _truncate_utf8(filename, MAX_FILENAME_BYTES)

    return filename


def _truncate_utf8(text: str, max_bytes: int) -> str:
    # Cut on a character boundary; a split multibyte sequence is dropped
    return text.encode('utf-8')[:max_bytes].decode('utf-8', 'ignore')


def split_filename(filename: str) -> Tuple[str, str]:
    """
    Split a filename at its last extension boundary.

    The extension keeps its original case and leading dot. Dotfiles without
    a further dot have no extension.

    Example:
        >>> split_filename("archive.tar.gz")
        ('archive.tar', '.gz')
        >>> split_filename(".hidden")
        ('.hidden', '')
        >>> split_filename("noextension")
        ('noextension', '')
    """
    return os.path.splitext(filename)
