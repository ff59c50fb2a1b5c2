"""
Streaming upload handler for the upload gateway.

Django's multipart parser hands every file part to the request's upload
handlers as it reads the body. ``GatewayUploadHandler`` applies the
acceptance policy when a part starts (request count, expected field,
declared content type), then streams accepted bytes straight into the upload
directory under a generated name while enforcing the per-file size ceiling.
Rejected bytes never reach a committed file.

``UploadDescriptor`` describes what a call site accepts: one field with one
file, one field with several files, or several named fields.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from django.core.files.uploadhandler import FileUploadHandler

from .conf import GatewayConfig, get_gateway_config
from .constants import (
    DEFAULT_ARRAY_MAX_COUNT,
    LOG_ERROR_ROLLBACK,
    LOG_FILE_STORED,
    LOG_ROLLBACK,
    MAX_FILES_PER_REQUEST,
    UPLOAD_CHUNK_SIZE,
)
from .exceptions import CountLimitExceeded, SizeLimitExceeded, UnexpectedField
from .utils import generate_storage_name
from .validators import check_content_type, validate_file_size

logger = logging.getLogger(__name__)

# Attempts at finding a free storage name before giving up
MAX_NAME_ATTEMPTS = 5

FieldSpec = Union[Mapping[str, Optional[int]], Iterable[Mapping[str, Any]]]


@dataclass(frozen=True)
class StoredFile:
    """
    An accepted file part, already written to the upload directory.

    Attributes:
        filename: Generated name the file is stored under
        original_name: Filename supplied by the client
        content_type: Declared Content-Type of the part
        size: Bytes written
        field_name: Multipart field the file arrived on
        path: Absolute path of the stored file
    """
    filename: str
    original_name: str
    content_type: str
    size: int
    field_name: str
    path: Path

    def close(self) -> None:
        # Django closes every request.FILES entry when the response ends;
        # the bytes were already flushed in file_complete().
        pass


@dataclass(frozen=True)
class UploadDescriptor:
    """
    Fields a call site accepts files on, with a max count per field.

    A max count of None means the field is only bounded by the request
    limit. The request limit itself never exceeds MAX_FILES_PER_REQUEST.
    """
    fields: Dict[str, Optional[int]]
    max_files: int = MAX_FILES_PER_REQUEST
    single_field: Optional[str] = None

    @classmethod
    def single(cls, field_name: str) -> 'UploadDescriptor':
        return cls(fields={field_name: 1}, single_field=field_name)

    @classmethod
    def array(cls, field_name: str, max_count: int = DEFAULT_ARRAY_MAX_COUNT) -> 'UploadDescriptor':
        return cls(fields={field_name: max_count})

    @classmethod
    def from_fields(cls, fields: FieldSpec) -> 'UploadDescriptor':
        """
        Build a descriptor for several named fields.

        Accepts either a mapping of field name to max count, or a list of
        ``{'name': ..., 'max_count': ...}`` dictionaries.

        Example:
            >>> UploadDescriptor.from_fields([
            ...     {'name': 'avatar', 'max_count': 1},
            ...     {'name': 'gallery', 'max_count': 8},
            ... ]).fields
            {'avatar': 1, 'gallery': 8}
        """
        if isinstance(fields, Mapping):
            return cls(fields=dict(fields))
        return cls(fields={spec['name']: spec.get('max_count') for spec in fields})

    def file_limit(self, config: GatewayConfig) -> int:
        return min(self.max_files, config.max_files)

    def accepts(self, field_name: str, count: int) -> bool:
        """Whether the ``count``-th file on ``field_name`` is expected."""
        if field_name not in self.fields:
            return False
        max_count = self.fields[field_name]
        return max_count is None or count <= max_count


class GatewayUploadHandler(FileUploadHandler):
    """
    Upload handler that validates and stores each file part as it arrives.

    Install it as the only handler before the request body is read:

        handler = GatewayUploadHandler(UploadDescriptor.single('document'), request)
        request.upload_handlers = [handler]
        request.FILES  # parses the body, raising on the first rejection

    Rejections are raised as gateway exceptions. The handler removes the
    partial file of the failing part itself; ``rollback()`` removes files
    that were completed earlier in the same request.
    """

    chunk_size = UPLOAD_CHUNK_SIZE

    def __init__(self, descriptor: UploadDescriptor, request=None, config: Optional[GatewayConfig] = None):
        super().__init__(request)
        self.descriptor = descriptor
        self.config = config or get_gateway_config()
        self.file_count = 0
        self.field_counts: Counter = Counter()
        self.stored_files: List[StoredFile] = []
        self.finished = False
        self.destination = None
        self.destination_path: Optional[Path] = None
        self.storage_name: Optional[str] = None
        self.bytes_received = 0

    def new_file(self, field_name, file_name, content_type, content_length, charset=None, content_type_extra=None):
        super().new_file(field_name, file_name, content_type, content_length, charset, content_type_extra)

        self.file_count += 1
        if self.file_count > self.descriptor.file_limit(self.config):
            raise CountLimitExceeded(details={'field': field_name})

        if not self.descriptor.accepts(field_name, self.field_counts[field_name] + 1):
            raise UnexpectedField(details={'field': field_name})
        self.field_counts[field_name] += 1

        result = check_content_type(content_type, self.config.allowed_mime_types)
        if not result.accepted:
            raise result.error

        self._open_destination(file_name)

    def _open_destination(self, file_name: str) -> None:
        # Exclusive create so a colliding name is retried instead of overwritten
        for _ in range(MAX_NAME_ATTEMPTS):
            storage_name = generate_storage_name(file_name)
            path = self.config.upload_dir / storage_name
            try:
                self.destination = path.open('xb')
            except FileExistsError:
                continue
            self.storage_name = storage_name
            self.destination_path = path
            self.bytes_received = 0
            return
        raise FileExistsError(f"No free storage name for {file_name}")

    def receive_data_chunk(self, raw_data, start):
        self.bytes_received += len(raw_data)
        try:
            validate_file_size(self.bytes_received, self.config.max_file_size)
        except SizeLimitExceeded:
            self._discard_current()
            raise

        self.destination.write(raw_data)
        # Returning None keeps the chunk from reaching any later handler
        return None

    def file_complete(self, file_size):
        self.destination.close()
        stored = StoredFile(
            filename=self.storage_name,
            original_name=self.file_name,
            content_type=self.content_type,
            size=file_size,
            field_name=self.field_name,
            path=self.destination_path.resolve(),
        )
        self.stored_files.append(stored)
        self.destination = None
        self.destination_path = None

        logger.info(LOG_FILE_STORED.format(
            filename=stored.filename,
            size=stored.size,
            original=stored.original_name,
            field=stored.field_name,
        ))
        return stored

    def upload_complete(self):
        self.finished = True

    def upload_interrupted(self):
        self._discard_current()

    def rollback(self) -> None:
        """
        Remove everything this handler wrote for an unfinished request.

        Does nothing once the body was parsed completely: from then on the
        files belong to the view.
        """
        if self.finished:
            return

        self._discard_current()
        removed = 0
        for stored in self.stored_files:
            if self._remove(stored.path):
                removed += 1
        self.stored_files = []

        if removed:
            logger.info(LOG_ROLLBACK.format(count=removed))

    def _discard_current(self) -> None:
        if self.destination is not None:
            self.destination.close()
            self.destination = None
        if self.destination_path is not None:
            self._remove(self.destination_path)
            self.destination_path = None

    def _remove(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(LOG_ERROR_ROLLBACK.format(path=path, error=e), exc_info=True)
            return False
        return True
