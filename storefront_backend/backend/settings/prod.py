# backend/settings/prod.py
"""
PATH: backend/settings/prod.py

PRODUCTION SETTINGS

Fail-closed rules:
- DEBUG is forced off
- SECRET_KEY, ALLOWED_HOSTS and DATABASE_URL must be set
- Stripe secret key and webhook secret must be set; an unsigned webhook
  endpoint would accept forged payment confirmations
- Postgres only, never SQLite
- CORS / CSRF origins are explicit https origins
"""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F403
from .base import BASE_DIR, MIDDLEWARE, PAYMENTS, env  # explicit for Ruff (F405)


def _required(value, message: str):
    if not value:
        raise ImproperlyConfigured(message)
    return value


def _check_origins(setting_name: str, origins: list[str]) -> list[str]:
    _required(origins, f"{setting_name} must be set in production.")
    for origin in origins:
        if "localhost" in origin or "127.0.0.1" in origin:
            raise ImproperlyConfigured(
                f"Remove local origin {origin!r} from {setting_name} in production."
            )
        if not origin.startswith("https://"):
            raise ImproperlyConfigured(f"{setting_name} entries must be https:// ({origin!r}).")
    return origins


DEBUG = False

# ----------------------------
# Secrets
# ----------------------------
_secret_key = (env("SECRET_KEY", default="") or "").strip()
if _secret_key == "dev-insecure-change-me":
    _secret_key = ""
SECRET_KEY = _required(
    _secret_key,
    "SECRET_KEY must be set to a strong value in production.",
)

_required(
    PAYMENTS["STRIPE"]["SECRET_KEY"],
    "STRIPE_SECRET_KEY must be set in production.",
)
_required(
    PAYMENTS["STRIPE"]["WEBHOOK_SECRET"],
    "STRIPE_WEBHOOK_SECRET must be set in production.",
)

ALLOWED_HOSTS = _required(
    env.list("ALLOWED_HOSTS", default=[]),
    "ALLOWED_HOSTS must be set in production.",
)

# ----------------------------
# Database (Postgres only)
# ----------------------------
_database_url = _required(
    (env("DATABASE_URL", default="") or "").strip(),
    "DATABASE_URL must be set in production.",
)
if _database_url.startswith("sqlite"):
    raise ImproperlyConfigured("Refusing to start in production with a SQLite DATABASE_URL.")

DATABASES = {"default": env.db("DATABASE_URL")}
DATABASES["default"]["CONN_MAX_AGE"] = env.int("DB_CONN_MAX_AGE", default=60)

# ----------------------------
# Static files (WhiteNoise)
# ----------------------------
STATIC_ROOT = env("STATIC_ROOT", default=str(BASE_DIR / "staticfiles"))
MIDDLEWARE.insert(1, "whitenoise.middleware.WhiteNoiseMiddleware")
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# ----------------------------
# Proxy / TLS
# ----------------------------
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=3600)
SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool("SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True)
SECURE_HSTS_PRELOAD = env.bool("SECURE_HSTS_PRELOAD", default=False)

SESSION_COOKIE_SECURE = True
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SECURE = True
CSRF_COOKIE_HTTPONLY = True
CSRF_COOKIE_SAMESITE = "Lax"

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = "same-origin"
SECURE_CROSS_ORIGIN_OPENER_POLICY = "same-origin"
X_FRAME_OPTIONS = "DENY"

# ----------------------------
# CORS / CSRF
# ----------------------------
CORS_ALLOWED_ORIGINS = _check_origins(
    "CORS_ALLOWED_ORIGINS", env.list("CORS_ALLOWED_ORIGINS", default=[])
)
CSRF_TRUSTED_ORIGINS = _check_origins(
    "CSRF_TRUSTED_ORIGINS", env.list("CSRF_TRUSTED_ORIGINS", default=[])
)
CORS_ALLOW_CREDENTIALS = False
