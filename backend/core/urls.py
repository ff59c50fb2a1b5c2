"""
URL configuration for core project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.1/topics/http/urls/
"""
from django.urls import path, include
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

@require_http_methods(["GET"])
def index(request):
    """Root endpoint providing API information"""
    return JsonResponse({
        'message': 'Welcome to the Upload Gateway API',
        'version': '1.0',
        'endpoints': {
            'uploads': '/api/uploads/',
            'verification': '/api/verification/',
            'serve': '/uploads/<filename>',
        },
        'documentation': {
            'upload_files': 'POST /api/uploads/',
            'upload_single_file': 'POST /api/uploads/single/',
            'file_info': 'GET /api/uploads/<filename>/',
            'delete_file': 'DELETE /api/uploads/<filename>/',
            'download_file': 'GET /api/uploads/<filename>/download/',
            'upload_verification_documents': 'POST /api/verification/',
            'serve_file': 'GET /uploads/<filename>',
        }
    })

urlpatterns = [
    path('', index, name='index'),
    path('', include('upload_gateway.urls')),
]
