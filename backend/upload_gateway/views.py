"""
API views for the upload gateway.

Endpoints:
    POST   /api/uploads/                      - Upload up to 20 files on field "files"
    POST   /api/uploads/single/               - Upload one file on field "file"
    GET    /api/uploads/{filename}/           - Get stored file info
    DELETE /api/uploads/{filename}/           - Delete a stored file
    GET    /api/uploads/{filename}/download/  - Download a stored file
    POST   /api/verification/                 - Upload verification documents
    GET    /uploads/{filename}                - Serve a stored file
"""

import logging

from django.http import FileResponse, JsonResponse
from django.views.decorators.http import require_http_methods
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response

from .constants import (
    ERROR_FILE_NOT_FOUND,
    ERROR_NO_FILE,
    LOG_FILE_SERVED,
    MAX_FILES_PER_REQUEST,
)
from .decorators import accept_uploads_method, upload_fields
from .exceptions import AccessDenied, FileNotFound
from .handlers import UploadDescriptor
from .serializers import StoredFileInfoSerializer, StoredFileSerializer
from .utils import delete_uploaded_file, get_file_info, get_stored_file_path

logger = logging.getLogger(__name__)

VERIFICATION_FIELDS = [
    {'name': 'registration_certificate', 'max_count': 1},
    {'name': 'tax_exemption', 'max_count': 1},
    {'name': 'supporting_documents', 'max_count': 5},
]


def _stored_file_response(filename: str) -> FileResponse:
    """
    Open a stored file for streaming.

    Raises:
        AccessDenied: If the name resolves outside the upload directory
        FileNotFound: If the file does not exist (or was deleted meanwhile)
    """
    path = get_stored_file_path(filename)
    try:
        handle = path.open('rb')
    except FileNotFoundError:
        # Deleted between the lookup and the open
        raise FileNotFound()

    logger.info(LOG_FILE_SERVED.format(filename=filename))
    return FileResponse(handle)


@require_http_methods(["GET", "HEAD"])
def serve_upload(request, filename):
    """
    Serve a previously stored file by name.

    Returns 403 ``{"error": "Access denied"}`` for names that resolve outside
    the upload directory and 404 ``{"error": "File not found"}`` for missing
    files; otherwise streams the file bytes.
    """
    try:
        return _stored_file_response(filename)
    except (AccessDenied, FileNotFound) as e:
        return JsonResponse(e.to_dict(), status=e.status_code)


@require_http_methods(["POST"])
@upload_fields(VERIFICATION_FIELDS)
def submit_verification_documents(request):
    """Accept an organisation's verification documents across named fields."""
    if not request.stored_files:
        return JsonResponse({'error': ERROR_NO_FILE}, status=status.HTTP_400_BAD_REQUEST)

    documents = {}
    for stored in request.stored_files:
        documents.setdefault(stored.field_name, []).append(
            StoredFileSerializer(stored, context={'request': request}).data
        )
    return JsonResponse({'documents': documents}, status=status.HTTP_201_CREATED)


class StoredFileViewSet(viewsets.ViewSet):
    """
    ViewSet for uploading, describing, downloading and deleting stored files.
    """

    lookup_field = 'filename'
    lookup_value_regex = r'[^/]+'

    def _created(self, request: Request, stored_files) -> Response:
        if not stored_files:
            return Response({'error': ERROR_NO_FILE}, status=status.HTTP_400_BAD_REQUEST)

        serializer = StoredFileSerializer(stored_files, many=True, context={'request': request})
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @accept_uploads_method(UploadDescriptor.array('files', MAX_FILES_PER_REQUEST))
    def create(self, request: Request) -> Response:
        """Upload several files on the "files" field."""
        return self._created(request, request.stored_files)

    @action(detail=False, methods=['post'])
    @accept_uploads_method(UploadDescriptor.single('file'))
    def single(self, request: Request) -> Response:
        """Upload exactly one file on the "file" field."""
        stored = [request.stored_file] if request.stored_file else []
        return self._created(request, stored)

    def retrieve(self, request: Request, filename: str = None) -> Response:
        """Get size and timestamps of a stored file."""
        info = get_file_info(filename)
        if info is None:
            return Response({'error': ERROR_FILE_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

        return Response(StoredFileInfoSerializer(info, context={'request': request}).data)

    def destroy(self, request: Request, filename: str = None) -> Response:
        """Delete a stored file."""
        if not delete_uploaded_file(filename):
            return Response({'error': ERROR_FILE_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def download(self, request: Request, filename: str = None) -> FileResponse:
        """Download the stored file; errors go through the DRF exception handler."""
        return _stored_file_response(filename)
