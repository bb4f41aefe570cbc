# sales/api/urls.py

"""
SALES API URLS

Rules:
- Explicit non-PK routes (like "orders/by-reference/...") MUST be registered
  BEFORE router URLs, otherwise the router treats them as a <pk>.

Provides:
- Public (AllowAny, poll throttle):
    GET  /api/sales/orders/by-reference/<payment_reference>/

- Staff (IsAdminUser):
    GET  /api/sales/orders/?status=&payment_status=&store=
    GET  /api/sales/orders/<uuid>/
    POST /api/sales/orders/<uuid>/resend-confirmation/
    POST /api/sales/orders/<uuid>/send-invoice/
    POST /api/sales/orders/<uuid>/send-shipment/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from sales.api.public import OrderByReferenceView
from sales.api.viewsets.order import OrderViewSet

app_name = "sales"

router = DefaultRouter()
router.register(r"orders", OrderViewSet, basename="orders")

urlpatterns = [
    path(
        "orders/by-reference/<str:payment_reference>/",
        OrderByReferenceView.as_view(),
        name="order-by-reference",
    ),
    path("", include(router.urls)),
]
