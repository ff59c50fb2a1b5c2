"""
Storage management utilities.

This module owns the upload directory: creating it at startup, generating
collision-resistant storage names, resolving stored names to paths inside
the directory, and deleting or describing stored files. The directory is
flat and holds no manifest, so the filesystem is the only source of truth.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..conf import GatewayConfig, get_gateway_config
from ..constants import (
    LOG_ACCESS_DENIED,
    LOG_ERROR_DELETE,
    LOG_ERROR_INFO,
    LOG_FILE_DELETED,
    LOG_STORAGE_READY,
    RANDOM_SUFFIX_UPPER_BOUND,
)
from ..exceptions import AccessDenied, FileNotFound
from ..validators import sanitize_filename, split_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFileInfo:
    """Filesystem metadata of a stored file."""
    filename: str
    size: int
    created_at: datetime
    modified_at: datetime


def configure_storage(config: Optional[GatewayConfig] = None) -> Path:
    """
    Ensure the upload directory exists, creating parents as needed.

    Idempotent; called once from ``UploadGatewayConfig.ready()`` and safe to
    call again on every startup.

    Returns:
        Path: The upload directory
    """
    config = config or get_gateway_config()
    config.upload_dir.mkdir(parents=True, exist_ok=True)
    logger.info(LOG_STORAGE_READY.format(path=config.upload_dir))
    return config.upload_dir


def generate_storage_name(
    original_name: str,
    timestamp_ms: Optional[int] = None,
    suffix: Optional[int] = None,
) -> str:
    """
    Generate the on-disk name for an uploaded file.

    The name has the form ``{basename}-{unixTimeMillis}-{random}{extension}``
    where ``random`` is drawn uniformly from [0, 1e9). Uniqueness is
    probabilistic, not guaranteed: two uploads of the same name in the same
    millisecond collide with probability about 1e-9. The random source is
    not cryptographic, so names must not be treated as secrets.

    Args:
        original_name: The filename supplied by the client
        timestamp_ms: Milliseconds since the epoch (defaults to now)
        suffix: Random suffix (defaults to a fresh random integer)

    Returns:
        str: The generated storage name

    Example:
        >>> generate_storage_name("report.pdf", timestamp_ms=1700000000000, suffix=42)
        'report-1700000000000-42.pdf'
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    if suffix is None:
        suffix = random.randrange(RANDOM_SUFFIX_UPPER_BOUND)

    basename, extension = split_filename(sanitize_filename(original_name))
    return f"{basename}-{timestamp_ms}-{suffix}{extension}"


def resolve_stored_path(filename: str, config: Optional[GatewayConfig] = None) -> Path:
    """
    Resolve a stored filename to an absolute path inside the upload directory.

    Both paths are fully resolved (symlinks followed, ``..`` collapsed)
    before the containment test, so neither ``..`` segments, absolute paths
    nor symlinks pointing outside can escape the directory. Names holding a
    NUL byte cannot name any file and are denied before resolution.

    Raises:
        AccessDenied: If the resolved path is not inside the upload directory
    """
    config = config or get_gateway_config()
    upload_dir = config.resolved_upload_dir
    # os.path rejects embedded NUL bytes with ValueError
    resolved = None if '\x00' in filename else (upload_dir / filename).resolve()

    if resolved is None or resolved == upload_dir or not resolved.is_relative_to(upload_dir):
        logger.warning(LOG_ACCESS_DENIED.format(filename=filename))
        raise AccessDenied()

    return resolved


def get_stored_file_path(filename: str, config: Optional[GatewayConfig] = None) -> Path:
    """
    Return the path of an existing stored file.

    Raises:
        AccessDenied: If the name resolves outside the upload directory
        FileNotFound: If no regular file exists under that name
    """
    path = resolve_stored_path(filename, config)
    if not path.is_file():
        raise FileNotFound()
    return path


def delete_uploaded_file(filename: str, config: Optional[GatewayConfig] = None) -> bool:
    """
    Delete a stored file.

    Never raises: names outside the upload directory and filesystem errors
    are logged and reported as False.

    Returns:
        bool: True if the file existed and was removed, False otherwise
    """
    try:
        path = get_stored_file_path(filename, config)
        path.unlink()
    except (AccessDenied, FileNotFound):
        return False
    except OSError as e:
        logger.error(LOG_ERROR_DELETE.format(error=e), exc_info=True)
        return False

    logger.info(LOG_FILE_DELETED.format(filename=filename))
    return True


def get_file_info(filename: str, config: Optional[GatewayConfig] = None) -> Optional[StoredFileInfo]:
    """
    Get size and timestamps of a stored file.

    The creation time is the birth time where the platform records one and
    the inode change time otherwise. Filesystem errors are logged and
    reported as None.

    Returns:
        StoredFileInfo, or None if the file does not exist
    """
    try:
        path = get_stored_file_path(filename, config)
        stats = path.stat()
    except (AccessDenied, FileNotFound):
        return None
    except OSError as e:
        logger.error(LOG_ERROR_INFO.format(error=e), exc_info=True)
        return None

    created = getattr(stats, 'st_birthtime', None) or stats.st_ctime
    return StoredFileInfo(
        filename=filename,
        size=stats.st_size,
        created_at=datetime.fromtimestamp(created, tz=timezone.utc),
        modified_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
    )
