"""
Upload decorators for views and API endpoints.

These decorators mount the gateway in front of a view: they install a
``GatewayUploadHandler`` on the request, parse the multipart body, and only
call the view once every accepted file is on disk. The view then finds the
stored files on ``request.stored_files`` (and ``request.stored_file`` for
single-file uploads).

Rejections are raised, not returned. ``UploadErrorMiddleware`` (function
views) and ``upload_exception_handler`` (DRF views) turn them into 400
responses.
"""

from functools import wraps

from django.views.decorators.csrf import csrf_exempt

from ..constants import DEFAULT_ARRAY_MAX_COUNT
from ..handlers import GatewayUploadHandler, UploadDescriptor


def _receive_uploads(request, handler, descriptor):
    """Parse the body through ``handler`` and attach the stored files."""
    try:
        request.FILES
    except Exception:
        handler.rollback()
        raise

    request.stored_files = list(handler.stored_files)
    if descriptor.single_field is not None:
        request.stored_file = request.stored_files[0] if request.stored_files else None


def accept_uploads(descriptor):
    """
    Decorator that runs the upload gateway before a Django function view.

    Upload handlers can only be installed before anything reads the body,
    and CsrfViewMiddleware reads it for POST requests. The returned view is
    therefore csrf_exempt, the same way DRF's ``APIView.as_view`` is.

    Args:
        descriptor (UploadDescriptor): Fields and counts the view accepts

    Returns:
        function: The decorated view function

    Example:
        @accept_uploads(UploadDescriptor.array('photos', max_count=3))
        def upload_photos(request):
            return JsonResponse({'stored': [f.filename for f in request.stored_files]})
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(request, *args, **kwargs):
            handler = GatewayUploadHandler(descriptor, request=request)
            request.upload_handlers = [handler]
            _receive_uploads(request, handler, descriptor)
            return view_func(request, *args, **kwargs)

        return csrf_exempt(wrapped_view)
    return decorator


def accept_uploads_method(descriptor):
    """
    Decorator that runs the upload gateway before a DRF view method.

    This is the ViewSet/APIView counterpart of ``accept_uploads``; the first
    argument is ``self`` and ``request`` is a DRF Request. DRF reads
    ``request.upload_handlers`` when it parses a multipart body, so the
    handler is set directly on the DRF request.

    Example:
        class DocumentViewSet(viewsets.ViewSet):
            @accept_uploads_method(UploadDescriptor.single('document'))
            def create(self, request):
                return Response({'filename': request.stored_file.filename})
    """
    def decorator(method_func):
        @wraps(method_func)
        def wrapped_method(self, request, *args, **kwargs):
            handler = GatewayUploadHandler(descriptor, request=request)
            request.upload_handlers = [handler]
            _receive_uploads(request, handler, descriptor)
            return method_func(self, request, *args, **kwargs)

        return wrapped_method
    return decorator


def upload_single(field_name):
    """Accept exactly one file on ``field_name``."""
    return accept_uploads(UploadDescriptor.single(field_name))


def upload_array(field_name, max_count=DEFAULT_ARRAY_MAX_COUNT):
    """Accept up to ``max_count`` files on ``field_name``."""
    return accept_uploads(UploadDescriptor.array(field_name, max_count))


def upload_fields(fields):
    """Accept files on several named fields, each with its own max count."""
    return accept_uploads(UploadDescriptor.from_fields(fields))
