"""
Test suite for the Upload Gateway application.

PART 1 - Acceptance policy and storage:
    - TestContentTypeFilter: Allow-list filter and its result value
    - TestFileValidators: Size ceiling, filename sanitization and splitting
    - TestGatewayConfig: Settings-driven configuration
    - TestStorageUtilities: Directory setup, storage names, containment,
      deletion and file info
    - TestUploadDescriptor: single / array / fields descriptors
    - TestGatewayUploadHandler: Per-part validation, streaming and rollback

PART 2 - Error translation:
    - TestErrorTranslation: Upload errors to JSON responses

PART 3 - HTTP surface:
    - TestStoredFileUploadAPI: Upload endpoints (array and single)
    - TestStoredFileDetailAPI: Info, delete and download endpoints
    - TestServeUpload: Serving route and path containment
    - TestVerificationUpload: Named-fields function view
"""

import os
import re
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from django.apps import apps
from django.conf import settings
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import connections
from django.test import RequestFactory, SimpleTestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from .conf import GatewayConfig, get_gateway_config, load_gateway_config
from .constants import (
    ALLOWED_MIME_TYPES,
    ERROR_FILE_NOT_FOUND,
    MAX_FILE_SIZE,
    MAX_FILES_PER_REQUEST,
    UNNAMED_FILE,
)
from .exceptions import (
    AccessDenied,
    CountLimitExceeded,
    FileNotFound,
    SizeLimitExceeded,
    TypeRejected,
    UnexpectedField,
    translate_upload_error,
    upload_exception_handler,
)
from .handlers import GatewayUploadHandler, StoredFile, UploadDescriptor
from .middleware import UploadErrorMiddleware
from .utils import (
    configure_storage,
    delete_uploaded_file,
    generate_storage_name,
    get_file_info,
    resolve_stored_path,
)
from .validators import (
    check_content_type,
    sanitize_filename,
    split_filename,
    validate_file_size,
)
from .views import serve_upload


SIZE_ERROR = 'File size too large. Maximum 10MB per file.'
COUNT_ERROR = 'Too many files. Maximum 20 files per request.'
FIELD_ERROR = 'Unexpected file field.'

STORAGE_NAME_PATTERN = r'^{base}-\d{{13}}-\d{{1,9}}{ext}$'


def make_file(name="document.pdf", content=b"%PDF-1.4 test content", content_type="application/pdf"):
    """Build an in-memory upload with a declared content type."""
    return SimpleUploadedFile(name, content, content_type=content_type)


class TempUploadDirMixin:
    """Point the gateway at a fresh temporary upload directory for each test."""

    def setUp(self):
        super().setUp()
        self.upload_dir = Path(tempfile.mkdtemp()).resolve()
        override = override_settings(UPLOAD_GATEWAY={'UPLOAD_DIR': self.upload_dir})
        override.enable()
        self.addCleanup(override.disable)
        self.addCleanup(shutil.rmtree, self.upload_dir, True)

    def stored_names(self):
        return sorted(path.name for path in self.upload_dir.iterdir())

    def store(self, name="stored-1700000000000-1.pdf", content=b"stored content"):
        path = self.upload_dir / name
        path.write_bytes(content)
        return path


# ============================================================================
# PART 1: ACCEPTANCE POLICY AND STORAGE
# ============================================================================


class TestContentTypeFilter(SimpleTestCase):
    """
    Test suite for the declared content-type filter.
    """

    def test_allowed_types_accepted(self):
        """Test every allow-listed type is accepted without an error."""
        for content_type in ALLOWED_MIME_TYPES:
            result = check_content_type(content_type)
            self.assertTrue(result.accepted, content_type)
            self.assertIsNone(result.error)

    def test_allow_list_contents(self):
        """Test the allow-list holds exactly the eight document and image types."""
        self.assertEqual(set(ALLOWED_MIME_TYPES), {
            'application/pdf',
            'image/jpeg',
            'image/png',
            'image/jpg',
            'application/msword',
            'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
            'application/vnd.ms-excel',
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        })

    def test_unlisted_type_rejected_with_type_in_message(self):
        """Test unlisted types are rejected with an error naming the type."""
        for content_type in ["text/html", "application/x-msdownload", "image/gif", ""]:
            result = check_content_type(content_type)
            self.assertFalse(result.accepted)
            self.assertIsInstance(result.error, TypeRejected)
            self.assertEqual(result.error.message, f"File type {content_type} is not allowed")

    def test_match_is_case_sensitive(self):
        """Test the allow-list match is exact, including case."""
        self.assertFalse(check_content_type("Application/PDF").accepted)
        self.assertFalse(check_content_type("image/png; charset=binary").accepted)


class TestFileValidators(SimpleTestCase):
    """
    Test suite for size validation and filename helpers.
    """

    def test_validate_file_size_exactly_max(self):
        """Test a file of exactly 10MB passes."""
        validate_file_size(MAX_FILE_SIZE)

    def test_validate_file_size_one_byte_over(self):
        """Test a file one byte over 10MB fails with the size message."""
        with self.assertRaises(SizeLimitExceeded) as context:
            validate_file_size(MAX_FILE_SIZE + 1)
        self.assertEqual(str(context.exception), SIZE_ERROR)

    def test_sanitize_filename_simple(self):
        self.assertEqual(sanitize_filename("report.pdf"), "report.pdf")
        self.assertEqual(sanitize_filename("my report (final).docx"), "my report (final).docx")

    def test_sanitize_filename_strips_directories(self):
        """Test path traversal and directory components are removed."""
        self.assertEqual(sanitize_filename("../../../etc/passwd"), "passwd")
        self.assertEqual(sanitize_filename("/var/tmp/scan.png"), "scan.png")
        self.assertEqual(sanitize_filename("C:\\Users\\me\\scan.png"), "scan.png")

    def test_sanitize_filename_control_characters(self):
        self.assertEqual(sanitize_filename("a\x00b.pdf"), "a_b.pdf")
        self.assertEqual(sanitize_filename("line\nbreak.pdf"), "line_break.pdf")

    def test_sanitize_filename_keeps_unicode(self):
        """Test non-ASCII names survive so they can prefix the storage name."""
        self.assertEqual(sanitize_filename("résumé.pdf"), "résumé.pdf")
        self.assertEqual(sanitize_filename("测试文件.pdf"), "测试文件.pdf")

    def test_sanitize_filename_empty(self):
        self.assertEqual(sanitize_filename(""), UNNAMED_FILE)
        self.assertEqual(sanitize_filename(".."), UNNAMED_FILE)
        self.assertEqual(sanitize_filename("dir/"), UNNAMED_FILE)

    def test_sanitize_filename_long_name_keeps_extension(self):
        result = sanitize_filename("a" * 300 + ".pdf")
        self.assertEqual(len(result), 200)
        self.assertTrue(result.endswith(".pdf"))

    def test_sanitize_filename_long_multibyte_name(self):
        """Test the cap counts UTF-8 bytes and cuts on a character boundary."""
        result = sanitize_filename("测" * 150 + ".pdf")
        self.assertLessEqual(len(result.encode('utf-8')), 200)
        self.assertEqual(result, "测" * 65 + ".pdf")

    def test_split_filename(self):
        """Test splitting at the last extension boundary."""
        self.assertEqual(split_filename("report.pdf"), ("report", ".pdf"))
        self.assertEqual(split_filename("archive.tar.gz"), ("archive.tar", ".gz"))
        self.assertEqual(split_filename("noextension"), ("noextension", ""))
        self.assertEqual(split_filename(".hidden"), (".hidden", ""))
        self.assertEqual(split_filename("Scan.JPG"), ("Scan", ".JPG"))


class TestGatewayConfig(TempUploadDirMixin, SimpleTestCase):
    """
    Test suite for the settings-driven gateway configuration.
    """

    def test_config_reads_upload_dir_setting(self):
        config = get_gateway_config()
        self.assertEqual(config.upload_dir, self.upload_dir)
        self.assertEqual(config.max_file_size, MAX_FILE_SIZE)
        self.assertEqual(config.max_files, MAX_FILES_PER_REQUEST)
        self.assertEqual(config.allowed_mime_types, ALLOWED_MIME_TYPES)

    def test_config_reloads_on_setting_change(self):
        """Test overriding UPLOAD_GATEWAY replaces the cached config."""
        other = self.upload_dir / "other"
        with override_settings(UPLOAD_GATEWAY={'UPLOAD_DIR': other}):
            self.assertEqual(get_gateway_config().upload_dir, other)
        self.assertEqual(get_gateway_config().upload_dir, self.upload_dir)

    def test_default_upload_dir(self):
        """Test the directory defaults to uploads/ under BASE_DIR."""
        with override_settings(UPLOAD_GATEWAY={}):
            self.assertEqual(load_gateway_config().upload_dir, Path(settings.BASE_DIR) / "uploads")

    def test_runs_without_auth_or_database(self):
        """Test the project installs no auth app and configures no database."""
        self.assertFalse(apps.is_installed('django.contrib.auth'))
        self.assertFalse(apps.is_installed('django.contrib.contenttypes'))
        self.assertEqual(connections['default'].settings_dict['ENGINE'], 'django.db.backends.dummy')


class TestStorageUtilities(TempUploadDirMixin, SimpleTestCase):
    """
    Test suite for the storage utilities.
    """

    def test_configure_storage_creates_nested_directory(self):
        """Test the upload directory and its parents are created."""
        nested = self.upload_dir / "a" / "b" / "uploads"
        result = configure_storage(GatewayConfig(upload_dir=nested))
        self.assertEqual(result, nested)
        self.assertTrue(nested.is_dir())

    def test_configure_storage_idempotent(self):
        """Test configuring an existing directory keeps its files."""
        self.store("keep-1-1.pdf")
        configure_storage()
        configure_storage()
        self.assertEqual(self.stored_names(), ["keep-1-1.pdf"])

    def test_app_ready_configures_storage(self):
        """Test the app configures storage when Django starts it."""
        nested = self.upload_dir / "startup"
        with override_settings(UPLOAD_GATEWAY={'UPLOAD_DIR': nested}):
            apps.get_app_config('upload_gateway').ready()
        self.assertTrue(nested.is_dir())

    def test_generate_storage_name_format(self):
        self.assertEqual(
            generate_storage_name("report.pdf", timestamp_ms=1700000000000, suffix=42),
            "report-1700000000000-42.pdf",
        )

    def test_generate_storage_name_uses_clock_and_random_suffix(self):
        """Test the default timestamp is the current time in milliseconds."""
        with patch('upload_gateway.utils.storage.time.time', return_value=1700000000.123):
            with patch('upload_gateway.utils.storage.random.randrange', return_value=999999999) as randrange:
                name = generate_storage_name("scan.png")
        self.assertEqual(name, "scan-1700000000123-999999999.png")
        randrange.assert_called_once_with(1_000_000_000)

    def test_generate_storage_name_preserves_basename_and_extension(self):
        for original, base, ext in [
            ("report.pdf", "report", ".pdf"),
            ("archive.tar.gz", "archive.tar", ".gz"),
            ("noextension", "noextension", ""),
            (".hidden", ".hidden", ""),
            ("Scan.JPG", "Scan", ".JPG"),
        ]:
            name = generate_storage_name(original)
            pattern = STORAGE_NAME_PATTERN.format(base=re.escape(base), ext=re.escape(ext))
            self.assertRegex(name, pattern)

    def test_generate_storage_name_strips_directories(self):
        name = generate_storage_name("../../etc/passwd.pdf", timestamp_ms=1, suffix=2)
        self.assertEqual(name, "passwd-1-2.pdf")

    def test_generate_storage_name_unique_within_millisecond(self):
        """Test the random suffix separates uploads sharing a timestamp."""
        names = {generate_storage_name("same.pdf", timestamp_ms=1700000000000) for _ in range(50)}
        self.assertEqual(len(names), 50)

    def test_generate_storage_name_differs_across_milliseconds(self):
        first = generate_storage_name("same.pdf", timestamp_ms=1700000000000, suffix=7)
        second = generate_storage_name("same.pdf", timestamp_ms=1700000000001, suffix=7)
        self.assertNotEqual(first, second)

    def test_resolve_stored_path_inside(self):
        path = resolve_stored_path("report-1-2.pdf")
        self.assertEqual(path, self.upload_dir / "report-1-2.pdf")

    def test_resolve_stored_path_traversal_denied(self):
        """Test '..' segments and absolute paths cannot escape the directory."""
        for filename in ["../../etc/passwd", "../secret.pdf", "/etc/passwd", "sub/../../x.pdf", ""]:
            with self.assertRaises(AccessDenied):
                resolve_stored_path(filename)

    def test_resolve_stored_path_symlink_escape_denied(self):
        """Test a symlink inside the directory pointing outside is denied."""
        outside = Path(tempfile.mkdtemp()).resolve()
        self.addCleanup(shutil.rmtree, outside, True)
        target = outside / "secret.pdf"
        target.write_bytes(b"secret")
        os.symlink(target, self.upload_dir / "link.pdf")

        with self.assertRaises(AccessDenied):
            resolve_stored_path("link.pdf")

    def test_resolve_stored_path_prefix_sibling_denied(self):
        """Test a sibling directory sharing the name prefix is not 'inside'."""
        sibling = Path(str(self.upload_dir) + "-evil")
        sibling.mkdir()
        self.addCleanup(shutil.rmtree, sibling, True)

        with self.assertRaises(AccessDenied):
            resolve_stored_path(f"../{sibling.name}/x.pdf")

    def test_delete_existing_file(self):
        """Test deleting a stored file returns True and info becomes absent."""
        path = self.store("doc-1-1.pdf")
        self.assertTrue(delete_uploaded_file("doc-1-1.pdf"))
        self.assertFalse(path.exists())
        self.assertIsNone(get_file_info("doc-1-1.pdf"))

    def test_delete_missing_file(self):
        """Test deleting a missing file returns False without raising."""
        self.assertFalse(delete_uploaded_file("missing-1-1.pdf"))

    def test_delete_outside_upload_dir(self):
        """Test delete refuses names outside the upload directory."""
        outside = Path(tempfile.mkdtemp()).resolve()
        self.addCleanup(shutil.rmtree, outside, True)
        victim = outside / "victim.pdf"
        victim.write_bytes(b"keep me")

        self.assertFalse(delete_uploaded_file(f"../{outside.name}/victim.pdf"))
        self.assertTrue(victim.exists())

    def test_null_byte_name_never_raises(self):
        """Test a NUL byte in the name is denied and delete/info report absence."""
        with self.assertRaises(AccessDenied):
            resolve_stored_path("a\x00b.pdf")
        self.assertFalse(delete_uploaded_file("a\x00b.pdf"))
        self.assertIsNone(get_file_info("a\x00b.pdf"))

    def test_delete_filesystem_error_is_logged(self):
        """Test filesystem errors during delete are logged and reported as False."""
        self.store("locked-1-1.pdf")
        with patch.object(Path, 'unlink', side_effect=PermissionError("denied")):
            with self.assertLogs('upload_gateway', level='ERROR') as logs:
                self.assertFalse(delete_uploaded_file("locked-1-1.pdf"))
        self.assertIn("Error deleting file", logs.output[0])

    def test_get_file_info(self):
        """Test info reports the bytes written and write-time timestamps."""
        before = datetime.now(timezone.utc) - timedelta(seconds=2)
        self.store("info-1-1.pdf", b"x" * 1234)
        after = datetime.now(timezone.utc) + timedelta(seconds=2)

        info = get_file_info("info-1-1.pdf")

        self.assertEqual(info.filename, "info-1-1.pdf")
        self.assertEqual(info.size, 1234)
        self.assertTrue(before <= info.modified_at <= after)
        self.assertTrue(before <= info.created_at <= after)
        self.assertEqual(info.modified_at.tzinfo, timezone.utc)

    def test_get_file_info_missing(self):
        self.assertIsNone(get_file_info("missing-1-1.pdf"))

    def test_get_file_info_directory_is_absent(self):
        (self.upload_dir / "subdir").mkdir()
        self.assertIsNone(get_file_info("subdir"))

    def test_get_file_info_filesystem_error_is_logged(self):
        """Test filesystem errors during lookup are logged and reported as absence."""
        self.store("broken-1-1.pdf")
        with patch.object(Path, 'stat', side_effect=PermissionError("denied")):
            with self.assertLogs('upload_gateway', level='ERROR'):
                self.assertIsNone(get_file_info("broken-1-1.pdf"))


class TestUploadDescriptor(SimpleTestCase):
    """
    Test suite for upload descriptors.
    """

    def test_single(self):
        descriptor = UploadDescriptor.single("document")
        self.assertEqual(descriptor.fields, {"document": 1})
        self.assertEqual(descriptor.single_field, "document")
        self.assertTrue(descriptor.accepts("document", 1))
        self.assertFalse(descriptor.accepts("document", 2))

    def test_array_default_max_count(self):
        descriptor = UploadDescriptor.array("photos")
        self.assertEqual(descriptor.fields, {"photos": 5})
        self.assertIsNone(descriptor.single_field)
        self.assertTrue(descriptor.accepts("photos", 5))
        self.assertFalse(descriptor.accepts("photos", 6))

    def test_from_fields_list(self):
        descriptor = UploadDescriptor.from_fields([
            {'name': 'avatar', 'max_count': 1},
            {'name': 'gallery', 'max_count': 8},
            {'name': 'extras'},
        ])
        self.assertEqual(descriptor.fields, {'avatar': 1, 'gallery': 8, 'extras': None})
        self.assertTrue(descriptor.accepts('extras', 19))
        self.assertFalse(descriptor.accepts('other', 1))

    def test_from_fields_mapping(self):
        descriptor = UploadDescriptor.from_fields({'avatar': 1, 'gallery': 3})
        self.assertTrue(descriptor.accepts('gallery', 3))
        self.assertFalse(descriptor.accepts('gallery', 4))

    def test_file_limit_capped_by_config(self):
        """Test a call site cannot raise the request limit above 20."""
        config = GatewayConfig(upload_dir=Path("/tmp"))
        self.assertEqual(UploadDescriptor({'a': None}, max_files=50).file_limit(config), 20)
        self.assertEqual(UploadDescriptor({'a': None}, max_files=3).file_limit(config), 3)


class TestGatewayUploadHandler(TempUploadDirMixin, SimpleTestCase):
    """
    Test suite for the streaming upload handler, driven the way Django's
    multipart parser drives it.
    """

    def make_handler(self, descriptor=None, **limits):
        config = GatewayConfig(upload_dir=self.upload_dir, **limits)
        return GatewayUploadHandler(descriptor or UploadDescriptor.array('files'), config=config)

    def feed(self, handler, data, name="report.pdf", field="files", content_type="application/pdf"):
        handler.new_file(field, name, content_type, len(data))
        if data:
            handler.receive_data_chunk(data, 0)
        return handler.file_complete(len(data))

    def test_stores_accepted_file(self):
        handler = self.make_handler()
        stored = self.feed(handler, b"hello pdf")

        self.assertIsInstance(stored, StoredFile)
        self.assertRegex(stored.filename, STORAGE_NAME_PATTERN.format(base="report", ext=r"\.pdf"))
        self.assertEqual(stored.original_name, "report.pdf")
        self.assertEqual(stored.content_type, "application/pdf")
        self.assertEqual(stored.size, 9)
        self.assertEqual(stored.field_name, "files")
        self.assertEqual(stored.path, self.upload_dir / stored.filename)
        self.assertEqual(stored.path.read_bytes(), b"hello pdf")
        self.assertEqual(handler.stored_files, [stored])

    def test_streams_multiple_chunks(self):
        handler = self.make_handler()
        handler.new_file("files", "big.pdf", "application/pdf", None)
        handler.receive_data_chunk(b"abc", 0)
        handler.receive_data_chunk(b"def", 3)
        stored = handler.file_complete(6)
        self.assertEqual(stored.path.read_bytes(), b"abcdef")

    def test_size_limit_exact_and_exceeded(self):
        """Test the ceiling is inclusive and the oversized part leaves nothing behind."""
        handler = self.make_handler(max_file_size=10)
        stored = self.feed(handler, b"x" * 10)
        self.assertEqual(stored.size, 10)

        handler.new_file("files", "big.pdf", "application/pdf", None)
        handler.receive_data_chunk(b"x" * 6, 0)
        with self.assertRaises(SizeLimitExceeded):
            handler.receive_data_chunk(b"x" * 5, 6)
        self.assertEqual(self.stored_names(), [stored.filename])

    def test_count_limit(self):
        handler = self.make_handler(UploadDescriptor({'files': None}, max_files=2))
        self.feed(handler, b"1")
        self.feed(handler, b"2")
        with self.assertRaises(CountLimitExceeded):
            handler.new_file("files", "three.pdf", "application/pdf", 1)
        self.assertEqual(len(self.stored_names()), 2)

    def test_unexpected_field(self):
        handler = self.make_handler(UploadDescriptor.single('document'))
        with self.assertRaises(UnexpectedField):
            handler.new_file("other", "x.pdf", "application/pdf", 1)

    def test_field_max_count_exceeded_is_unexpected(self):
        handler = self.make_handler(UploadDescriptor.single('document'))
        self.feed(handler, b"1", field="document")
        with self.assertRaises(UnexpectedField):
            handler.new_file("document", "second.pdf", "application/pdf", 1)

    def test_rejected_type_never_reaches_disk(self):
        handler = self.make_handler()
        with self.assertRaises(TypeRejected) as context:
            handler.new_file("files", "page.html", "text/html", 10)
        self.assertEqual(context.exception.message, "File type text/html is not allowed")
        self.assertEqual(self.stored_names(), [])

    def test_rollback_removes_written_files(self):
        """Test files completed earlier in a failed request are removed."""
        handler = self.make_handler()
        self.feed(handler, b"first")
        handler.new_file("files", "second.pdf", "application/pdf", None)
        handler.receive_data_chunk(b"partial", 0)

        handler.rollback()

        self.assertEqual(self.stored_names(), [])
        self.assertEqual(handler.stored_files, [])

    def test_rollback_after_complete_upload_keeps_files(self):
        handler = self.make_handler()
        stored = self.feed(handler, b"kept")
        handler.upload_complete()

        handler.rollback()

        self.assertTrue(stored.path.exists())

    def test_upload_interrupted_removes_partial_file(self):
        handler = self.make_handler()
        handler.new_file("files", "cut.pdf", "application/pdf", None)
        handler.receive_data_chunk(b"half", 0)

        handler.upload_interrupted()

        self.assertEqual(self.stored_names(), [])

    def test_name_collision_retries(self):
        """Test an existing file is never overwritten by a colliding name."""
        existing = self.store("report-1-1.pdf", b"original")
        names = iter(["report-1-1.pdf", "report-1-2.pdf"])
        with patch('upload_gateway.handlers.generate_storage_name', side_effect=lambda _: next(names)):
            stored = self.feed(self.make_handler(), b"new")

        self.assertEqual(stored.filename, "report-1-2.pdf")
        self.assertEqual(existing.read_bytes(), b"original")


# ============================================================================
# PART 2: ERROR TRANSLATION
# ============================================================================


class TestErrorTranslation(SimpleTestCase):
    """
    Test suite for translating upload errors into responses.
    """

    def test_translate_upload_errors(self):
        cases = [
            (SizeLimitExceeded(), SIZE_ERROR),
            (CountLimitExceeded(), COUNT_ERROR),
            (UnexpectedField(), FIELD_ERROR),
            (TypeRejected("text/plain"), "File type text/plain is not allowed"),
        ]
        for exc, message in cases:
            self.assertEqual(translate_upload_error(exc), (400, {'error': message}))

    def test_translate_other_errors_returns_none(self):
        """Test errors outside the upload taxonomy are left for the generic handler."""
        for exc in [ValueError("File type looks odd"), RuntimeError("boom"), FileNotFound(), AccessDenied()]:
            self.assertIsNone(translate_upload_error(exc))

    def test_middleware_translates_upload_errors(self):
        middleware = UploadErrorMiddleware(lambda request: None)
        request = RequestFactory().post('/api/verification/')

        response = middleware.process_exception(request, CountLimitExceeded())

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.content, b'{"error": "Too many files. Maximum 20 files per request."}')

    def test_middleware_translates_not_found_and_access_denied(self):
        middleware = UploadErrorMiddleware(lambda request: None)
        request = RequestFactory().get('/uploads/x')

        self.assertEqual(middleware.process_exception(request, FileNotFound()).status_code, 404)
        self.assertEqual(middleware.process_exception(request, AccessDenied()).status_code, 403)

    def test_middleware_logs_refused_request(self):
        middleware = UploadErrorMiddleware(lambda request: None)
        request = RequestFactory().get('/uploads/x')

        with self.assertLogs('upload_gateway', level='WARNING') as logs:
            middleware.process_exception(request, AccessDenied())

        self.assertIn("403 AccessDenied on /uploads/x", logs.output[0])

    def test_middleware_passes_other_errors_through(self):
        middleware = UploadErrorMiddleware(lambda request: None)
        request = RequestFactory().get('/')
        self.assertIsNone(middleware.process_exception(request, RuntimeError("boom")))

    def test_drf_exception_handler(self):
        response = upload_exception_handler(SizeLimitExceeded(), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {'error': SIZE_ERROR})

        response = upload_exception_handler(AccessDenied(), {})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data, {'error': 'Access denied'})

    def test_drf_exception_handler_defers_unknown_errors(self):
        self.assertIsNone(upload_exception_handler(RuntimeError("boom"), {}))


# ============================================================================
# PART 3: HTTP SURFACE
# ============================================================================


class TestStoredFileUploadAPI(TempUploadDirMixin, APISimpleTestCase):
    """
    Test suite for the upload endpoints:
    - Upload files (POST /api/uploads/)
    - Upload one file (POST /api/uploads/single/)
    """

    def setUp(self):
        super().setUp()
        self.list_url = reverse('upload_gateway:stored-file-list')
        self.single_url = reverse('upload_gateway:stored-file-single')

    def post_files(self, files, field="files", url=None):
        return self.client.post(url or self.list_url, {field: files}, format="multipart")

    def test_upload_single_valid_file(self):
        response = self.post_files([make_file("report.pdf", b"pdf bytes")])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data), 1)
        stored = response.data[0]
        self.assertRegex(stored['filename'], STORAGE_NAME_PATTERN.format(base="report", ext=r"\.pdf"))
        self.assertEqual(stored['original_name'], "report.pdf")
        self.assertEqual(stored['content_type'], "application/pdf")
        self.assertEqual(stored['size'], len(b"pdf bytes"))
        self.assertEqual(stored['field_name'], "files")
        self.assertTrue(stored['url'].endswith(f"/uploads/{stored['filename']}"))
        self.assertEqual((self.upload_dir / stored['filename']).read_bytes(), b"pdf bytes")

    def test_upload_exactly_max_size(self):
        """Test a file of exactly 10MB is accepted."""
        response = self.post_files([make_file("exact.pdf", b"x" * MAX_FILE_SIZE)])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data[0]['size'], MAX_FILE_SIZE)
        self.assertEqual(os.path.getsize(self.upload_dir / response.data[0]['filename']), MAX_FILE_SIZE)

    def test_upload_one_byte_over_max_size(self):
        """Test a file one byte over 10MB is rejected and nothing is stored."""
        response = self.post_files([make_file("large.pdf", b"x" * (MAX_FILE_SIZE + 1))])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': SIZE_ERROR})
        self.assertEqual(self.stored_names(), [])

    def test_upload_max_file_count(self):
        """Test 20 files in one request are accepted."""
        files = [make_file(f"doc{i}.pdf", b"x") for i in range(MAX_FILES_PER_REQUEST)]
        response = self.post_files(files)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data), MAX_FILES_PER_REQUEST)
        self.assertEqual(len(self.stored_names()), MAX_FILES_PER_REQUEST)

    def test_upload_too_many_files(self):
        """Test 21 files are rejected and earlier files of the request are removed."""
        files = [make_file(f"doc{i}.pdf", b"x") for i in range(MAX_FILES_PER_REQUEST + 1)]
        response = self.post_files(files)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': COUNT_ERROR})
        self.assertEqual(self.stored_names(), [])

    def test_upload_rejected_type(self):
        response = self.post_files([make_file("notes.txt", b"text", "text/plain")])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': "File type text/plain is not allowed"})

    def test_upload_rejected_type_rolls_back_earlier_files(self):
        response = self.post_files([
            make_file("ok.pdf", b"fine"),
            make_file("script.sh", b"#!/bin/sh", "application/x-sh"),
        ])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stored_names(), [])

    def test_upload_unexpected_field(self):
        response = self.post_files([make_file()], field="attachment")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': FIELD_ERROR})

    def test_upload_no_file_provided(self):
        response = self.client.post(self.list_url, {}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': "No file provided"})

    def test_upload_same_name_twice_gets_distinct_names(self):
        first = self.post_files([make_file("same.pdf", b"one")])
        second = self.post_files([make_file("same.pdf", b"two")])

        self.assertNotEqual(first.data[0]['filename'], second.data[0]['filename'])
        self.assertEqual(len(self.stored_names()), 2)

    def test_upload_long_multibyte_name(self):
        """Test a long non-ASCII name is shortened to fit the filesystem limit."""
        response = self.post_files([make_file("测" * 150 + ".pdf", b"x")])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        filename = response.data[0]['filename']
        self.assertLessEqual(len(filename.encode('utf-8')), 255)
        self.assertTrue(filename.startswith("测"))
        self.assertTrue(filename.endswith(".pdf"))
        self.assertEqual(self.stored_names(), [filename])

    def test_single_upload(self):
        response = self.client.post(self.single_url, {"file": make_file("scan.png", b"png", "image/png")},
                                    format="multipart")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data[0]['field_name'], "file")
        self.assertEqual(response.data[0]['content_type'], "image/png")

    def test_single_upload_second_file_is_unexpected(self):
        response = self.post_files([make_file("a.pdf"), make_file("b.pdf")], field="file", url=self.single_url)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': FIELD_ERROR})
        self.assertEqual(self.stored_names(), [])


class TestStoredFileDetailAPI(TempUploadDirMixin, APISimpleTestCase):
    """
    Test suite for the stored file endpoints:
    - Get file info (GET /api/uploads/{filename}/)
    - Delete file (DELETE /api/uploads/{filename}/)
    - Download file (GET /api/uploads/{filename}/download/)
    """

    def detail_url(self, filename):
        return reverse('upload_gateway:stored-file-detail', kwargs={'filename': filename})

    def test_retrieve_info(self):
        self.store("info-1700000000000-5.pdf", b"12345")

        response = self.client.get(self.detail_url("info-1700000000000-5.pdf"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['filename'], "info-1700000000000-5.pdf")
        self.assertEqual(response.data['size'], 5)
        self.assertIn('created_at', response.data)
        self.assertIn('modified_at', response.data)

    def test_retrieve_missing(self):
        response = self.client.get(self.detail_url("missing-1-1.pdf"))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': ERROR_FILE_NOT_FOUND})

    def test_null_byte_name_reported_missing(self):
        """Test info and delete answer 404 for a name holding a NUL byte."""
        self.assertEqual(self.client.get("/api/uploads/a%00b/").status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.delete("/api/uploads/a%00b/").status_code, status.HTTP_404_NOT_FOUND)

    def test_delete(self):
        path = self.store("gone-1-1.pdf")

        response = self.client.delete(self.detail_url("gone-1-1.pdf"))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(path.exists())
        self.assertEqual(self.client.delete(self.detail_url("gone-1-1.pdf")).status_code,
                         status.HTTP_404_NOT_FOUND)

    def test_download(self):
        self.store("dl-1-1.pdf", b"download me")

        response = self.client.get(
            reverse('upload_gateway:stored-file-download', kwargs={'filename': "dl-1-1.pdf"})
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(b"".join(response.streaming_content), b"download me")
        response.close()

    def test_download_missing(self):
        response = self.client.get(
            reverse('upload_gateway:stored-file-download', kwargs={'filename': "missing-1-1.pdf"})
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': ERROR_FILE_NOT_FOUND})

    def test_upload_then_info_then_delete(self):
        """Test a full lifecycle: upload, describe, serve, delete."""
        upload = self.client.post(
            reverse('upload_gateway:stored-file-list'),
            {"files": [make_file("cycle.pdf", b"lifecycle")]},
            format="multipart",
        )
        filename = upload.data[0]['filename']

        info = self.client.get(self.detail_url(filename))
        self.assertEqual(info.data['size'], len(b"lifecycle"))

        served = self.client.get(f"/uploads/{filename}")
        self.assertEqual(b"".join(served.streaming_content), b"lifecycle")
        served.close()

        self.assertEqual(self.client.delete(self.detail_url(filename)).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(self.detail_url(filename)).status_code, status.HTTP_404_NOT_FOUND)


class TestServeUpload(TempUploadDirMixin, SimpleTestCase):
    """
    Test suite for the serving route (GET /uploads/{filename}).
    """

    def test_serve_existing_file(self):
        self.store("served-1-1.png", b"\x89PNG data")

        response = self.client.get("/uploads/served-1-1.png")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(b"".join(response.streaming_content), b"\x89PNG data")
        self.assertEqual(response['Content-Type'], "image/png")
        response.close()

    def test_serve_missing_file(self):
        response = self.client.get("/uploads/missing-1-1.pdf")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'error': "File not found"})

    def test_serve_traversal_denied(self):
        response = self.client.get("/uploads/../../etc/passwd")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {'error': "Access denied"})

    def test_serve_absolute_path_denied(self):
        response = serve_upload(RequestFactory().get("/uploads/x"), "/etc/passwd")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.content, b'{"error": "Access denied"}')

    def test_serve_symlink_escape_denied(self):
        outside = Path(tempfile.mkdtemp()).resolve()
        self.addCleanup(shutil.rmtree, outside, True)
        (outside / "secret.pdf").write_bytes(b"secret")
        os.symlink(outside / "secret.pdf", self.upload_dir / "link-1-1.pdf")

        response = self.client.get("/uploads/link-1-1.pdf")

        self.assertEqual(response.status_code, 403)

    def test_serve_null_byte_denied(self):
        """Test an encoded NUL byte in the name is denied, not a server error."""
        response = self.client.get("/uploads/a%00b.pdf")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {'error': "Access denied"})

    def test_serve_rejects_post(self):
        self.assertEqual(self.client.post("/uploads/any-1-1.pdf").status_code, 405)


class TestVerificationUpload(TempUploadDirMixin, SimpleTestCase):
    """
    Test suite for the named-fields upload view (POST /api/verification/).
    """

    def setUp(self):
        super().setUp()
        self.url = reverse('upload_gateway:verification')

    def test_upload_named_fields(self):
        response = self.client.post(self.url, {
            'registration_certificate': make_file("certificate.pdf"),
            'supporting_documents': [
                make_file("photo1.jpg", b"jpg1", "image/jpeg"),
                make_file("photo2.png", b"png2", "image/png"),
            ],
        })

        self.assertEqual(response.status_code, 201)
        documents = response.json()['documents']
        self.assertEqual(set(documents), {'registration_certificate', 'supporting_documents'})
        self.assertEqual(len(documents['supporting_documents']), 2)
        self.assertEqual(documents['registration_certificate'][0]['original_name'], "certificate.pdf")
        self.assertEqual(len(self.stored_names()), 3)

    def test_unexpected_field(self):
        response = self.client.post(self.url, {'avatar': make_file("me.png", b"png", "image/png")})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': FIELD_ERROR})

    def test_field_max_count_exceeded(self):
        response = self.client.post(self.url, {
            'registration_certificate': [make_file("one.pdf"), make_file("two.pdf")],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': FIELD_ERROR})
        self.assertEqual(self.stored_names(), [])

    def test_rejected_type(self):
        response = self.client.post(self.url, {
            'tax_exemption': make_file("exemption.exe", b"MZ", "application/x-msdownload"),
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': "File type application/x-msdownload is not allowed"})

    def test_no_files(self):
        response = self.client.post(self.url, {'note': 'no attachments'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': "No file provided"})

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)
