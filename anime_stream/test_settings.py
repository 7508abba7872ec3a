import os

os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret-key")

from .settings import *  # noqa: E402,F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "anime-stream-tests",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# moto intercepts the default AWS endpoints only
S3_ENDPOINT_URL = None
S3_PUBLIC_ENDPOINT = None
S3_ACCESS_KEY = "testing"
S3_SECRET_KEY = "testing"

CLOUDCONVERT_API_URL = "https://cloudconvert.test/v2"
CLOUDCONVERT_API_KEY = "test-key"
PROCESSING_SECRET_TOKEN = "test-webhook-secret"
JIKAN_API_URL = "https://jikan.test/v4"

CELERY_TASK_ALWAYS_EAGER = False
