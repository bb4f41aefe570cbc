# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS

- In-memory SQLite, locmem mail outbox
- Deterministic Stripe config (fake keys, known webhook secret)
- Notifications delivered inline on commit (no worker thread in tests)
- Throttling effectively disabled
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, PAYMENTS, REST_FRAMEWORK

DEBUG = False

SECRET_KEY = "test-secret-key"

ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
DEFAULT_FROM_EMAIL = "orders@test.local"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PAYMENTS = {
    **PAYMENTS,
    "STRIPE": {
        **PAYMENTS["STRIPE"],
        "SECRET_KEY": "sk_test_dummy",
        "PUBLISHABLE_KEY": "pk_test_dummy",
        "WEBHOOK_SECRET": "whsec_test_secret",
        "WEBHOOK_TOLERANCE": 300,
        "REQUEST_TIMEOUT": 5.0,
        "MAX_NETWORK_RETRIES": 0,
    },
    "DEFAULT_CURRENCY": "USD",
    "SUCCESS_URL": "http://shop.test/checkout/success",
    "CANCEL_URL": "http://shop.test/checkout/cancel",
}

FRONTEND_BASE_URL = "http://shop.test"

RECONCILIATION = {
    "BATCH_SIZE": 50,
    "GRACE_MINUTES": 15,
    "INTERVAL_SECONDS": 300,
}

NOTIFICATIONS = {
    "DELIVER_INLINE": True,
    "MAX_ATTEMPTS": 3,
    "RETRY_BASE_SECONDS": 60,
    "STALE_SENDING_MINUTES": 15,
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_RATES": {
        scope: "10000/min" for scope in REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]
    },
}

LOGGING = {
    **LOGGING,
    "root": {"handlers": ["console"], "level": "CRITICAL"},
    "loggers": {
        name: {**cfg, "level": "CRITICAL"} for name, cfg in LOGGING["loggers"].items()
    },
}
