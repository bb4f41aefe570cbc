# backend/urls.py
"""
PROJECT URLS

Everything lives under /api/:
- payments/   checkout session creation, Stripe webhook, browser return (AllowAny, throttled)
- sales/      staff order desk + public order status by payment reference
- credits/    credit top-ups for authenticated users
- health/     DB + payment configuration check for the load balancer

The admin path comes from ADMIN_PATH so production can move it off /admin/.
"""

from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.db import DatabaseError, connections
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.utils import extend_schema
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from payments.config import PaymentSettings

API_MODULES = {
    "payments": "/api/payments/",
    "sales": "/api/sales/",
    "credits": "/api/credits/",
}


@extend_schema(responses={200: {"type": "object"}})
@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request):
    return Response(
        {
            "message": "Storefront Backend API is running",
            "auth": {
                "jwt_create": "/api/auth/jwt/create/",
                "jwt_refresh": "/api/auth/jwt/refresh/",
            },
            "docs": {"swagger": "/api/docs/", "schema": "/api/schema/"},
            "modules": API_MODULES,
        }
    )


def _database_status() -> tuple[bool, str]:
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except DatabaseError as exc:
        return False, str(exc)
    return True, ""


@extend_schema(
    responses={
        200: {
            "type": "object",
            "properties": {
                "status": {"type": "string"},
                "db": {"type": "string"},
                "payments": {"type": "string"},
            },
        },
        503: {"type": "object"},
    },
)
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """
    Liveness + readiness in one call:
    - db: a trivial query succeeds
    - payments: Stripe keys are present (webhooks would 400 without the secret)
    """
    db_ok, db_error = _database_status()
    payment_settings = PaymentSettings.from_settings()
    payments_ok = bool(payment_settings.secret_key and payment_settings.webhook_secret)

    body = {
        "status": "ok" if db_ok else "degraded",
        "db": "ok" if db_ok else "down",
        "payments": "configured" if payments_ok else "unconfigured",
    }
    if not db_ok:
        body["error"] = db_error
        return Response(body, status=503)
    return Response(body)


ADMIN_PATH = getattr(settings, "ADMIN_PATH", "admin/")
if not ADMIN_PATH.endswith("/"):
    ADMIN_PATH = f"{ADMIN_PATH}/"


api_urlpatterns = [
    path("", api_root, name="api-root"),
    path("health/", health_check, name="health-check"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("auth/jwt/create/", TokenObtainPairView.as_view(), name="jwt-create"),
    path("auth/jwt/refresh/", TokenRefreshView.as_view(), name="jwt-refresh"),
    path("payments/", include("payments.urls")),
    path("sales/", include("sales.api.urls")),
    path("credits/", include("credits.urls")),
]

urlpatterns = [
    path(ADMIN_PATH, admin.site.urls),
    path("", RedirectView.as_view(url="/api/docs/", permanent=False), name="root"),
    path("api/", include(api_urlpatterns)),
]
