# config/settings/test.py
from .base import *  # noqa

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Low work factor keeps the suite fast; production uses BCRYPT_ROUNDS (12).
BCRYPT_ROUNDS = 4

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Throttling is exercised explicitly where needed.
REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_CLASSES": [],
    "DEFAULT_THROTTLE_RATES": {
        **REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"],
        "login": "1000/min",
        "register": "1000/min",
        "sensitive": "1000/min",
    },
}

# pytest captures through the root logger
for _name in ("clinic_core", "clinic_core.audit"):
    LOGGING["loggers"][_name].update(level="WARNING", handlers=[], propagate=True)
