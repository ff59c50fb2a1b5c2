"""
Django settings for core project.

Secrets and deployment switches come from the environment; the upload
gateway limits are fixed in ``upload_gateway.constants``.
"""
import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-upload-gateway-dev-key')

DEBUG = os.environ.get('DJANGO_DEBUG', 'False').lower() in ('1', 'true', 'yes')

ALLOWED_HOSTS = [host for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if host]


# Application definition

# No contrib.auth: REST_FRAMEWORK below runs without authentication classes
# or a user model.
INSTALLED_APPS = [
    'rest_framework',
    'upload_gateway.apps.UploadGatewayConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'upload_gateway.middleware.UploadErrorMiddleware',
]

ROOT_URLCONF = 'core.urls'

WSGI_APPLICATION = 'core.wsgi.application'


# Database
# The gateway keeps no records; the filesystem is its only store, so
# DATABASES is left unset and Django falls back to its dummy backend.


# Internationalization

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True


# File uploads

UPLOAD_GATEWAY = {
    'UPLOAD_DIR': Path(os.environ.get('UPLOAD_GATEWAY_DIR', BASE_DIR / 'uploads')),
}

# Above the gateway's own 20 file ceiling so its count error is the one raised
DATA_UPLOAD_MAX_NUMBER_FILES = 100


# REST Framework

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.MultiPartParser',
    ],
    'EXCEPTION_HANDLER': 'upload_gateway.exceptions.upload_exception_handler',
    'TEST_REQUEST_DEFAULT_FORMAT': 'multipart',
}


# Logging

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'upload_gateway': {
            'handlers': ['console'],
            'level': os.environ.get('UPLOAD_GATEWAY_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
