# config/settings/prod.py
from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa

DEBUG = False

if SECRET_KEY == "unsafe-dev-key":
    raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set in production.")

if not FIELD_ENCRYPTION_KEY or not FIELD_DIGEST_KEY:
    raise ImproperlyConfigured("FIELD_ENCRYPTION_KEY and FIELD_DIGEST_KEY must be set in production.")

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [o for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o]
CORS_ALLOW_CREDENTIALS = True

SIMPLE_JWT["AUTH_COOKIE_SECURE"] = True
SIMPLE_JWT["AUTH_COOKIE_SAMESITE"] = "Lax"

SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
