# payments/urls.py
"""
PAYMENTS API URLS

Base path (mounted in backend/urls.py):
    /api/payments/

- POST /api/payments/checkout/
- POST /api/payments/stripe/webhook/
- GET  /api/payments/stripe/return/
"""

from __future__ import annotations

from django.urls import path

from payments.views.checkout import CheckoutView
from payments.views.stripe_return import StripeReturnView
from payments.views.stripe_webhook import StripeWebhookView

app_name = "payments"

urlpatterns = [
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("stripe/webhook/", StripeWebhookView.as_view(), name="stripe-webhook"),
    path("stripe/return/", StripeReturnView.as_view(), name="stripe-return"),
]
