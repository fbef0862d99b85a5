"""Test settings - uses SQLite for fast local testing."""
import os

os.environ.setdefault("SECRET_KEY", "test-only-secret-key-0123456789-abcdefghijklmnopqrstuvwxyz")
os.environ.setdefault("DEBUG", "True")

from .base import *  # noqa: F401,F403,E402

DEBUG = True

# Use SQLite for tests (no PostgreSQL dependency)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}
DATABASES["default"]["ATOMIC_REQUESTS"] = False

# Disable Redis cache in tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Fixed signing key so tests can mint tokens
SIMPLE_JWT["SIGNING_KEY"] = "test-jwt-secret"  # noqa: F405
SIMPLE_JWT["ISSUER"] = None  # noqa: F405
SIMPLE_JWT["AUDIENCE"] = None  # noqa: F405

# Disable API throttling in tests for deterministic runs
REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []  # noqa: F405
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}  # noqa: F405
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = ["api.renderers.EnvelopeJSONRenderer"]  # noqa: F405

# Disable logging noise during tests
LOGGING["root"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["logistics"]["handlers"] = ["console"]  # noqa: F405
LOGGING["loggers"]["logistics"]["level"] = "WARNING"  # noqa: F405
