"""
Integration Tests for the Upload Gateway API
============================================
Test Suite: Production-Critical Scenarios against a running server

Test Coverage:
- Upload & Storage Naming
- Size and Count Limits (10MB per file, 20 files per request)
- Content-Type Filtering
- Serving, Info & Deletion
- Path Containment

Start the server first (``python manage.py runserver``); the suite is
skipped when UPLOAD_GATEWAY_URL is not reachable.
"""

import io
import os
import re
from typing import List, Tuple

import pytest
import requests

# Test Configuration
BASE_URL = os.environ.get("UPLOAD_GATEWAY_URL", "http://127.0.0.1:8000").rstrip("/")
UPLOADS_ENDPOINT = f"{BASE_URL}/api/uploads/"
TIMEOUT = 30  # seconds

# Constants
MB = 1024 * 1024
MAX_FILE_SIZE = 10 * MB
MAX_FILES = 20


def _server_available() -> bool:
    try:
        requests.get(f"{BASE_URL}/", timeout=2)
    except requests.RequestException:
        return False
    return True


pytestmark = pytest.mark.skipif(not _server_available(), reason=f"No upload gateway running at {BASE_URL}")


class TestHelper:
    """Helper class for common test operations"""

    @staticmethod
    def create_file_content(size_bytes: int, pattern: str = "A") -> bytes:
        """Create file content of specified size"""
        return (pattern * size_bytes).encode()[:size_bytes]

    @staticmethod
    def upload_files(
        files: List[Tuple[str, bytes, str]],
        field: str = "files",
        url: str = UPLOADS_ENDPOINT,
    ) -> requests.Response:
        """Upload (filename, content, content_type) triples on one field"""
        parts = [(field, (name, io.BytesIO(content), content_type)) for name, content, content_type in files]
        return requests.post(url, files=parts, timeout=TIMEOUT)

    @staticmethod
    def get_info(filename: str) -> requests.Response:
        return requests.get(f"{UPLOADS_ENDPOINT}{filename}/", timeout=TIMEOUT)

    @staticmethod
    def delete_file(filename: str) -> requests.Response:
        return requests.delete(f"{UPLOADS_ENDPOINT}{filename}/", timeout=TIMEOUT)

    @staticmethod
    def serve(path: str) -> requests.Response:
        return requests.get(f"{BASE_URL}/uploads/{path}", timeout=TIMEOUT)


@pytest.fixture(scope="function")
def cleanup_files():
    """Fixture that deletes every stored file a test tracked"""
    stored: List[str] = []

    yield stored.append

    for filename in stored:
        TestHelper.delete_file(filename)


# =============================================================================
# Test Suite 1: Upload & Storage Naming
# =============================================================================

class TestUploadNaming:
    """Test uploads are stored under generated names"""

    def test_upload_pdf(self, cleanup_files):
        """
        Test Case: Upload one PDF
        Expected: HTTP 201, stored under {basename}-{ms}-{random}.pdf
        """
        content = TestHelper.create_file_content(1024, "report_")

        response = TestHelper.upload_files([("report.pdf", content, "application/pdf")])

        assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.text}"
        data = response.json()[0]
        cleanup_files(data["filename"])
        assert re.match(r"^report-\d{13}-\d{1,9}\.pdf$", data["filename"]), data["filename"]
        assert data["original_name"] == "report.pdf"
        assert data["size"] == len(content)

    def test_same_name_twice(self, cleanup_files):
        """
        Test Case: Upload the same filename twice
        Expected: Both stored, under different names
        """
        first = TestHelper.upload_files([("same.png", b"one", "image/png")]).json()[0]
        second = TestHelper.upload_files([("same.png", b"two", "image/png")]).json()[0]
        cleanup_files(first["filename"])
        cleanup_files(second["filename"])

        assert first["filename"] != second["filename"]
        assert TestHelper.serve(first["filename"]).content == b"one"
        assert TestHelper.serve(second["filename"]).content == b"two"


# =============================================================================
# Test Suite 2: Size and Count Limits
# =============================================================================

class TestLimits:
    """Test the per-file size and per-request count limits"""

    def test_exactly_max_size(self, cleanup_files):
        """
        Test Case: Upload a file of exactly 10MB
        Expected: HTTP 201
        """
        response = TestHelper.upload_files([("exact.pdf", b"x" * MAX_FILE_SIZE, "application/pdf")])

        assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.text}"
        cleanup_files(response.json()[0]["filename"])
        assert response.json()[0]["size"] == MAX_FILE_SIZE

    def test_one_byte_over_max_size(self):
        """
        Test Case: Upload a file of 10MB + 1 byte
        Expected: HTTP 400 with the size message
        """
        response = TestHelper.upload_files([("large.pdf", b"x" * (MAX_FILE_SIZE + 1), "application/pdf")])

        assert response.status_code == 400
        assert response.json() == {"error": "File size too large. Maximum 10MB per file."}

    def test_too_many_files(self):
        """
        Test Case: Upload 21 files in one request
        Expected: HTTP 400 with the count message
        """
        files = [(f"doc{i}.pdf", b"x", "application/pdf") for i in range(MAX_FILES + 1)]

        response = TestHelper.upload_files(files)

        assert response.status_code == 400
        assert response.json() == {"error": "Too many files. Maximum 20 files per request."}


# =============================================================================
# Test Suite 3: Content-Type Filtering & Fields
# =============================================================================

class TestFiltering:
    """Test content-type filtering and field checks"""

    def test_rejected_type(self):
        response = TestHelper.upload_files([("notes.txt", b"text", "text/plain")])

        assert response.status_code == 400
        assert response.json() == {"error": "File type text/plain is not allowed"}

    def test_unexpected_field(self):
        response = TestHelper.upload_files([("a.pdf", b"x", "application/pdf")], field="attachment")

        assert response.status_code == 400
        assert response.json() == {"error": "Unexpected file field."}


# =============================================================================
# Test Suite 4: Serving, Info & Deletion
# =============================================================================

class TestLifecycle:
    """Test a stored file can be described, served and deleted"""

    def test_info_serve_delete(self):
        content = TestHelper.create_file_content(2048, "sheet_")
        upload = TestHelper.upload_files([("sheet.xls", content, "application/vnd.ms-excel")])
        filename = upload.json()[0]["filename"]

        info = TestHelper.get_info(filename)
        assert info.status_code == 200
        assert info.json()["size"] == len(content)

        served = TestHelper.serve(filename)
        assert served.status_code == 200
        assert served.content == content

        assert TestHelper.delete_file(filename).status_code == 204
        assert TestHelper.get_info(filename).status_code == 404
        assert TestHelper.serve(filename).status_code == 404

    def test_serve_missing(self):
        response = TestHelper.serve("missing-1-1.pdf")

        assert response.status_code == 404
        assert response.json() == {"error": "File not found"}


# =============================================================================
# Test Suite 5: Path Containment
# =============================================================================

class TestContainment:
    """Test stored names cannot reach outside the upload directory"""

    def test_encoded_traversal_denied(self):
        """
        Test Case: Request an encoded ../../etc/passwd
        Expected: HTTP 403, never the file contents
        """
        response = TestHelper.serve("..%2F..%2Fetc%2Fpasswd")

        assert response.status_code == 403
        assert response.json() == {"error": "Access denied"}


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s", "--tb=short"])
