# ============================================================================
# SETTINGS: Everything environment-specific comes from environment variables.
# A local .env file (next to manage.py) is loaded first, if present.
# ============================================================================

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# =====================================================
# DJANGO CORE
# =====================================================

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-local-development-key')
DEBUG = env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h.strip() for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'rindwa',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'
WSGI_APPLICATION = 'config.wsgi.application'

# =====================================================
# DATABASE: Postgres (Supabase) when configured, SQLite otherwise
# =====================================================

if os.getenv('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('POSTGRES_DB'),
            'USER': os.getenv('POSTGRES_USER', 'postgres'),
            'PASSWORD': os.getenv('POSTGRES_PASSWORD', ''),
            'HOST': os.getenv('POSTGRES_HOST', 'localhost'),
            'PORT': os.getenv('POSTGRES_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

# =====================================================
# REST FRAMEWORK
# =====================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rindwa.authentication.BearerTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'rindwa.exceptions.rindwa_exception_handler',
    'UNAUTHENTICATED_USER': 'django.contrib.auth.models.AnonymousUser',
}

# =====================================================
# RINDWA
# =====================================================

# Distinct community verifications that move an incident to "verified"
RINDWA_VERIFICATION_THRESHOLD = int(os.getenv('RINDWA_VERIFICATION_THRESHOLD', '3'))

# Signing key for access tokens; falls back to the Django secret key
RINDWA_JWT_SECRET = os.getenv('RINDWA_JWT_SECRET') or SECRET_KEY
RINDWA_ACCESS_TOKEN_LIFETIME_MINUTES = int(os.getenv('RINDWA_ACCESS_TOKEN_LIFETIME_MINUTES', '60'))

# How long a staff invitation can be accepted
RINDWA_INVITATION_LIFETIME_DAYS = int(os.getenv('RINDWA_INVITATION_LIFETIME_DAYS', '7'))

# =====================================================
# INTEGRATIONS
# =====================================================

GOOGLE_MAPS_API_KEY = os.getenv('GOOGLE_MAPS_API_KEY')

SUPABASE_URL = os.getenv('SUPABASE_URL')
SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY')
SUPABASE_MEDIA_BUCKET = os.getenv('SUPABASE_MEDIA_BUCKET', 'incident-media')

# Optional: service that turns a notification into phone push messages
PUSH_GATEWAY_URL = os.getenv('PUSH_GATEWAY_URL')
PUSH_GATEWAY_TOKEN = os.getenv('PUSH_GATEWAY_TOKEN')

# =====================================================
# LOGGING
# =====================================================

LOG_LEVEL = os.getenv('DJANGO_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'rindwa': {
            'level': LOG_LEVEL,
        },
    },
}
