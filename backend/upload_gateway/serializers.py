"""
Serializers for upload gateway API responses.

Stored files are plain filesystem entries, not model instances, so these
are read-only ``Serializer`` classes over the ``StoredFile`` and
``StoredFileInfo`` dataclasses.
"""

from typing import Optional

from django.urls import reverse
from rest_framework import serializers


class _StoredFileUrlMixin:

    def get_url(self, obj) -> Optional[str]:
        path = reverse('upload_gateway:serve', kwargs={'filename': obj.filename})
        request = self.context.get('request')
        if request is not None:
            return request.build_absolute_uri(path)
        return path


class StoredFileSerializer(_StoredFileUrlMixin, serializers.Serializer):
    """
    Descriptor of a file accepted by the gateway, as returned after upload.
    """

    filename = serializers.CharField(read_only=True)
    original_name = serializers.CharField(read_only=True)
    content_type = serializers.CharField(read_only=True)
    size = serializers.IntegerField(read_only=True)
    field_name = serializers.CharField(read_only=True)
    url = serializers.SerializerMethodField()


class StoredFileInfoSerializer(_StoredFileUrlMixin, serializers.Serializer):
    """Size and timestamps of a stored file."""

    filename = serializers.CharField(read_only=True)
    size = serializers.IntegerField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    modified_at = serializers.DateTimeField(read_only=True)
    url = serializers.SerializerMethodField()
