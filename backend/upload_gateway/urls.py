"""
URL configuration for the upload gateway.

Mount it at the site root; the serving route and the API routes carry their
own prefixes.
"""
from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

app_name = 'upload_gateway'

router = SimpleRouter()
router.register(r'uploads', views.StoredFileViewSet, basename='stored-file')

urlpatterns = [
    path('api/', include(router.urls)),
    path('api/verification/', views.submit_verification_documents, name='verification'),
    path('uploads/<path:filename>', views.serve_upload, name='serve'),
]
