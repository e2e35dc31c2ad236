"""
Django settings for signflow project.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-dev-only-signflow')

DEBUG = os.environ.get('DJANGO_DEBUG', '1') == '1'

ALLOWED_HOSTS = [
    h.strip() for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if h.strip()
]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'signing',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'signflow.urls'

# The signing core keeps no tables; persistence lives in the caller's store.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
    'DEFAULT_PARSER_CLASSES': ['rest_framework.parsers.JSONParser'],
    # Authentication and sessions are handled upstream of this service
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.AllowAny'],
    'UNAUTHENTICATED_USER': None,
    'EXCEPTION_HANDLER': 'signing.views.api_exception_handler',
}

# Base64 inflates by 4/3, keep the request ceiling above the PDF ceiling
MAX_UPLOAD_PDF_BYTES = int(os.environ.get('MAX_UPLOAD_PDF_BYTES', 25 * 1024 * 1024))
DATA_UPLOAD_MAX_MEMORY_SIZE = MAX_UPLOAD_PDF_BYTES * 2

# ----------------------------
# Field geometry
# ----------------------------
# Field boxes are sized in device pixels at zoom 1.0. This is the one
# system-wide conversion into PDF points used when stamping.
FIELD_UNITS_PER_POINT = 1.0
DEFAULT_FIELD_WIDTH = 150
DEFAULT_FIELD_HEIGHT = 50

# ----------------------------
# Signature capture
# ----------------------------
SIGNATURE_IMAGE_WIDTH = 400
SIGNATURE_IMAGE_HEIGHT = 100
SIGNATURE_PEN_WIDTH = 3
SIGNATURE_FONT_SIZE = 30
SIGNATURE_BACKGROUND = 'transparent'  # or 'white'
SIGNATURE_FONT_PATHS = [
    BASE_DIR / 'static' / 'fonts' / 'DancingScript-Regular.ttf',
    BASE_DIR / 'static' / 'fonts' / 'DancingScript-Bold.ttf',
    BASE_DIR.parent / 'static' / 'fonts' / 'DancingScript-Regular.ttf',
    Path('/System/Library/Fonts/Supplemental/Brush Script.ttf'),  # macOS
    Path('/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf'),
]

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'signing': {
            'handlers': ['console'],
            'level': os.environ.get('SIGNING_LOG_LEVEL', 'INFO'),
            'propagate': True,
        },
    },
}
